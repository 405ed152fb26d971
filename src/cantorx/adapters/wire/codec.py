# src/cantorx/adapters/wire/codec.py
"""
Wire Codec - Quote Serialization for Cache, Bus and Responses

Quotes travel as protobuf bytes through the hot cache, the bus and the
persistent stream; REST/RPC responses are JSON unless the client asks for
``application/x-protobuf``. JSON uses the same snake_case names as the
protobuf fields.

A ``change_24h`` of 0 on the wire means unknown and decodes to None.

Files that USE this module:
- cantorx.application.* (encode before cache/bus writes, decode on reads)
- cantorx.adapters.web.* (response bodies and RPC request bodies)

Files that this module USES:
- cantorx.adapters.wire.schema (protobuf message classes)
- cantorx.domain.models (Quote, HistoryPoint, Source)
- cantorx.domain.errors (SerializationError)
"""
from __future__ import annotations

import struct
from typing import Iterable, Optional

from google.protobuf.message import DecodeError

from cantorx.adapters.wire.schema import (
    CantorListMessage,
    HistoryResponseMessage,
    QuoteMessage,
    RateListResponseMessage,
    RateRequestMessage,
    ReplayRequestMessage,
    StreamRatesRequestMessage,
)
from cantorx.domain.errors import SerializationError
from cantorx.domain.models import HistoryPoint, Quote, Source

_FRAME_HEADER = struct.Struct(">BI")


def _fill_quote(message, quote: Quote) -> None:
    message.buy_rate = quote.buy_rate
    message.sell_rate = quote.sell_rate
    message.cantor_id = quote.source_id
    message.currency = quote.currency
    message.fetched_at = quote.fetched_at
    message.change_24h = quote.change_24h or 0.0


def _quote_from_message(message) -> Quote:
    try:
        buy = float(message.buy_rate)
        sell = float(message.sell_rate)
    except ValueError:
        raise SerializationError("quote carries a malformed rate") from None
    return Quote(
        source_id=message.cantor_id,
        currency=message.currency,
        buy=buy,
        sell=sell,
        fetched_at=message.fetched_at,
        change_24h=message.change_24h or None,
    )


def encode_quote(quote: Quote) -> bytes:
    """Serialize a Quote to protobuf bytes."""
    message = QuoteMessage()
    _fill_quote(message, quote)
    return message.SerializeToString()


def decode_quote(payload: bytes) -> Quote:
    """
    Deserialize protobuf bytes into a Quote.

    Raises:
        SerializationError: If the payload is not a valid Quote
    """
    message = QuoteMessage()
    try:
        message.ParseFromString(payload)
    except DecodeError as e:
        raise SerializationError("payload is not a valid quote") from e
    return _quote_from_message(message)


def quote_to_dict(quote: Quote) -> dict:
    return {
        "buy_rate": quote.buy_rate,
        "sell_rate": quote.sell_rate,
        "cantor_id": quote.source_id,
        "currency": quote.currency,
        "fetched_at": quote.fetched_at,
        "change_24h": quote.change_24h or 0.0,
    }


def quote_list_to_bytes(quotes: Iterable[Quote]) -> bytes:
    message = RateListResponseMessage()
    for quote in quotes:
        _fill_quote(message.results.add(), quote)
    return message.SerializeToString()


def quote_list_to_dict(quotes: Iterable[Quote]) -> dict:
    return {"results": [quote_to_dict(q) for q in quotes]}


def history_to_bytes(currency: str, points: Iterable[HistoryPoint]) -> bytes:
    message = HistoryResponseMessage(currency=currency)
    for point in points:
        message.points.add(time=point.time, buy_rate=point.buy_rate, sell_rate=point.sell_rate)
    return message.SerializeToString()


def history_to_dict(currency: str, points: Iterable[HistoryPoint]) -> dict:
    return {
        "points": [
            {"time": p.time, "buy_rate": p.buy_rate, "sell_rate": p.sell_rate} for p in points
        ],
        "currency": currency,
    }


def cantor_to_dict(source: Source) -> dict:
    return {
        "id": source.id,
        "name": source.name,
        "display_name": source.display_name,
        "strategy": source.strategy,
        "units": source.units,
        "latitude": source.latitude,
        "longitude": source.longitude,
    }


def cantors_to_bytes(sources: Iterable[Source]) -> bytes:
    message = CantorListMessage()
    for s in sources:
        message.cantors.add(
            id=s.id,
            name=s.name,
            display_name=s.display_name,
            strategy=s.strategy,
            units=s.units,
            latitude=s.latitude or 0.0,
            longitude=s.longitude or 0.0,
        )
    return message.SerializeToString()


def _parse(message_class, payload: bytes):
    message = message_class()
    try:
        message.ParseFromString(payload)
    except DecodeError as e:
        raise SerializationError(f"request body is not a valid {message_class.DESCRIPTOR.name}") from e
    return message


def decode_stream_request(payload: bytes) -> list[str]:
    """Currencies of a binary StreamRatesRequest."""
    return list(_parse(StreamRatesRequestMessage, payload).currencies)


def decode_rate_request(payload: bytes) -> str:
    """Currency of a binary RateRequest."""
    return _parse(RateRequestMessage, payload).currency


def decode_replay_request(payload: bytes) -> tuple[str, Optional[int]]:
    """(currency, since) of a binary ReplayRequest; since 0 means from the start of retention."""
    message = _parse(ReplayRequestMessage, payload)
    return message.currency, (message.since or None)


def frame(payload: bytes) -> bytes:
    """Length-prefix one message for a binary stream: flag byte 0, 4-byte big-endian length."""
    return _FRAME_HEADER.pack(0, len(payload)) + payload


def unframe(data: bytes) -> list[bytes]:
    """Split a buffer of complete frames back into messages."""
    messages = []
    offset = 0
    while offset < len(data):
        if len(data) - offset < _FRAME_HEADER.size:
            raise SerializationError("truncated frame header")
        _, length = _FRAME_HEADER.unpack_from(data, offset)
        offset += _FRAME_HEADER.size
        if len(data) - offset < length:
            raise SerializationError("truncated frame body")
        messages.append(data[offset:offset + length])
        offset += length
    return messages
