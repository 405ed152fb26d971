"""
Content negotiation between JSON and protobuf.

JSON is the default; a client gets protobuf bytes by sending
``Accept: application/x-protobuf``, and may send protobuf request bodies with
``Content-Type: application/x-protobuf``.
"""
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from cantorx.adapters.wire.schema import PROTOBUF_MEDIA_TYPE


def _media_types(header: Optional[str]) -> list[str]:
    if not header:
        return []
    return [part.split(";", 1)[0].strip().lower() for part in header.split(",")]


def wants_protobuf(request: Request) -> bool:
    return PROTOBUF_MEDIA_TYPE in _media_types(request.headers.get("accept"))


def sends_protobuf(request: Request) -> bool:
    return PROTOBUF_MEDIA_TYPE in _media_types(request.headers.get("content-type"))


def negotiate(request: Request, as_dict: Callable[[], object], as_bytes: Callable[[], bytes]) -> Response:
    """Build the response in the representation the client asked for."""
    if wants_protobuf(request):
        return Response(content=as_bytes(), media_type=PROTOBUF_MEDIA_TYPE)
    return JSONResponse(content=as_dict())
