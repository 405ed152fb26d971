# src/cantorx/adapters/web/rpc.py
"""
RPC Surface - Streaming and Bulk Quote Operations

Served on its own port, separate from the REST API:
    - POST /rpc/StreamRates  body StreamRatesRequest -> endless stream of Quote
    - POST /rpc/GetAllRates  body RateRequest        -> RateListResponse
    - POST /rpc/ReplayRates  body ReplayRequest      -> RateListResponse

Request bodies are JSON, or protobuf with ``Content-Type: application/x-protobuf``.
StreamRates answers NDJSON (one Quote per line) by default; with
``Accept: application/x-protobuf`` each Quote is sent as a length-prefixed
frame. The stream ends when the client disconnects.

Files that USE this module:
- cantorx.app (serves create_rpc_app on the RPC port)
- tests.test_rpc

Files that this module USES:
- cantorx.application.stream_service (StreamService)
- cantorx.adapters.wire.codec (request decoding, response encoding, framing)
"""
from __future__ import annotations

import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import Response, StreamingResponse

from cantorx import __version__
from cantorx.adapters.wire import codec
from cantorx.adapters.wire.schema import PROTOBUF_MEDIA_TYPE
from cantorx.adapters.web.errors import install_error_handlers
from cantorx.adapters.web.negotiation import negotiate, sends_protobuf, wants_protobuf
from cantorx.application.stream_service import StreamService
from cantorx.domain.errors import BadRequestError, SerializationError
from cantorx.shared.validators import validate_currency, validate_currency_list

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def get_stream_service(request: Request) -> StreamService:
    return request.app.state.stream_service


async def _read_body(request: Request, decode_binary: Callable[[bytes], Any]) -> Any:
    """Decoded protobuf body, or the parsed JSON object (empty body -> {})."""
    body = await request.body()
    if sends_protobuf(request):
        try:
            return decode_binary(body)
        except SerializationError as e:
            raise BadRequestError(e.message) from None
    if not body.strip():
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        raise BadRequestError("request body is not valid JSON") from None
    if not isinstance(data, dict):
        raise BadRequestError("request body must be a JSON object")
    return data


router = APIRouter(prefix="/rpc", tags=["rpc"])


@router.post("/StreamRates", summary="Stream live quotes")
async def stream_rates(request: Request, service: StreamService = Depends(get_stream_service)):
    body = await _read_body(request, codec.decode_stream_request)
    currencies = body if isinstance(body, list) else body.get("currencies") or []
    if not isinstance(currencies, list):
        raise BadRequestError("currencies must be a list")
    wanted = validate_currency_list(currencies)
    binary = wants_protobuf(request)

    async def events() -> AsyncIterator[bytes]:
        async with aclosing(service.stream_rates(wanted)) as quotes:
            async for quote in quotes:
                if binary:
                    yield codec.frame(codec.encode_quote(quote))
                else:
                    yield (json.dumps(codec.quote_to_dict(quote)) + "\n").encode("utf-8")

    return StreamingResponse(events(), media_type=PROTOBUF_MEDIA_TYPE if binary else NDJSON_MEDIA_TYPE)


@router.post("/GetAllRates", summary="Latest cached quote of every cantor for one currency")
async def get_all_rates(request: Request, service: StreamService = Depends(get_stream_service)) -> Response:
    body = await _read_body(request, codec.decode_rate_request)
    currency = validate_currency(body if isinstance(body, str) else body.get("currency"))
    quotes = await service.get_all_rates(currency)
    return negotiate(request, lambda: codec.quote_list_to_dict(quotes), lambda: codec.quote_list_to_bytes(quotes))


@router.post("/ReplayRates", summary="Quotes retained in the persistent stream")
async def replay_rates(request: Request, service: StreamService = Depends(get_stream_service)) -> Response:
    body = await _read_body(request, codec.decode_replay_request)
    if isinstance(body, tuple):
        raw_currency, since = body
    else:
        raw_currency, since = body.get("currency"), body.get("since")
    currency = validate_currency(raw_currency)
    if since is not None and (isinstance(since, bool) or not isinstance(since, int) or since < 0):
        raise BadRequestError("invalid since: expected seconds since epoch")
    quotes = await service.replay(currency, since)
    return negotiate(request, lambda: codec.quote_list_to_dict(quotes), lambda: codec.quote_list_to_bytes(quotes))


def create_rpc_app(stream_service: StreamService) -> FastAPI:
    """Application factory for the RPC listener."""
    app = FastAPI(title="cantorx-rpc", version=__version__)
    app.state.stream_service = stream_service
    install_error_handlers(app)
    app.include_router(router)
    return app
