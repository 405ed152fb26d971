"""
Wire Adapters

Protobuf schema and conversions between domain objects and wire formats.
"""

from cantorx.adapters.wire.codec import decode_quote, encode_quote
from cantorx.adapters.wire.schema import PROTOBUF_MEDIA_TYPE

__all__ = ["PROTOBUF_MEDIA_TYPE", "decode_quote", "encode_quote"]
