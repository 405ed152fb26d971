# src/cantorx/adapters/web/api.py
"""
REST API - Public HTTP Surface

Endpoints (also reachable under ``/api/v1`` except ``/healthz`` and ``/stats``):
    - GET /healthz                          -> 200 {"status": "ok"} or 503
    - GET /cantors                          -> list of cantors
    - GET /rates?cantor_id=&currency=       -> latest Quote
    - GET /history?currency=&days=&cantor_id= -> hourly HistoryResponse
    - GET /stats                            -> harvest telemetry

Responses are JSON unless the client sends ``Accept: application/x-protobuf``.
Query parameters are validated here before any service is called; a
missing required parameter is a 400, an unknown cantor a 404.

Files that USE this module:
- cantorx.app (serves create_app on the REST port)
- tests.test_api

Files that this module USES:
- cantorx.application.* (RatesService, HealthChecker, HarvestStats)
- cantorx.adapters.persistence (SourceDirectory, HistoryStore)
- cantorx.adapters.wire.codec (response bodies)
- cantorx.shared.validators (query parameter parsing)
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from cantorx import __version__
from cantorx.adapters.persistence import HistoryStore, SourceDirectory
from cantorx.adapters.wire import codec
from cantorx.adapters.web.errors import install_error_handlers
from cantorx.adapters.web.negotiation import negotiate
from cantorx.application.health import HealthChecker
from cantorx.application.rates_service import RatesService
from cantorx.application.stats import HarvestStats
from cantorx.shared.validators import parse_cantor_id, parse_days, validate_currency

DAY_SECONDS = 24 * 3600


@dataclass
class ApiServices:
    """Everything the REST handlers delegate to."""
    rates: RatesService
    directory: SourceDirectory
    history: HistoryStore
    health: HealthChecker
    stats: HarvestStats


def get_services(request: Request) -> ApiServices:
    return request.app.state.services


router = APIRouter(tags=["rates"])


@router.get("/cantors", summary="List known cantors")
async def list_cantors(request: Request, services: ApiServices = Depends(get_services)) -> Response:
    sources = await asyncio.to_thread(services.directory.list)
    return negotiate(
        request,
        lambda: [codec.cantor_to_dict(s) for s in sources],
        lambda: codec.cantors_to_bytes(sources),
    )


@router.get("/rates", summary="Latest quote of one cantor for one currency")
async def get_rate(
    request: Request,
    cantor_id: Optional[str] = None,
    currency: Optional[str] = None,
    services: ApiServices = Depends(get_services),
) -> Response:
    source_id = parse_cantor_id(cantor_id)
    code = validate_currency(currency)
    quote = await services.rates.get_rate(source_id, code)
    return negotiate(request, lambda: codec.quote_to_dict(quote), lambda: codec.encode_quote(quote))


@router.get("/history", summary="Hourly averaged rates")
async def get_history(
    request: Request,
    currency: Optional[str] = None,
    days: Optional[str] = None,
    cantor_id: Optional[str] = None,
    services: ApiServices = Depends(get_services),
) -> Response:
    code = validate_currency(currency)
    window = parse_days(days)
    source_id = parse_cantor_id(cantor_id, required=False)
    if source_id is not None:
        # unknown cantor -> 404
        await asyncio.to_thread(services.directory.get, source_id)
    since = int(time.time()) - window * DAY_SECONDS
    points = await asyncio.to_thread(services.history.range, code, since, source_id)
    return negotiate(
        request,
        lambda: codec.history_to_dict(code, points),
        lambda: codec.history_to_bytes(code, points),
    )


def create_app(services: ApiServices) -> FastAPI:
    """Application factory for the REST listener."""
    app = FastAPI(title="cantorx", version=__version__)
    app.state.services = services
    install_error_handlers(app)

    @app.get("/healthz", summary="Database and cache health")
    async def healthz(services: ApiServices = Depends(get_services)):
        status = await services.health.check()
        if status.is_healthy:
            return {"status": "ok"}
        return JSONResponse(status_code=503, content={"status": "error", "service": status.failing})

    @app.get("/stats", summary="Harvest telemetry")
    async def stats(services: ApiServices = Depends(get_services)):
        return services.stats.snapshot()

    app.include_router(router)
    app.include_router(router, prefix="/api/v1")
    return app
