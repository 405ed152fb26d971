"""
Web Error Handlers

Renders domain errors as ``{"error": kind, "detail": message}`` with the
status the error class declares. Anything unexpected is logged with its
traceback and answered with a generic 500.

Files that USE this module:
- cantorx.adapters.web.api, cantorx.adapters.web.rpc (install_error_handlers)

Files that this module USES:
- cantorx.domain.errors (CantorXError)
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from cantorx.domain.errors import CantorXError

logger = logging.getLogger(__name__)


def cantorx_error_handler(request: Request, exc: CantorXError):  # type: ignore
    if exc.status >= 500:
        logger.warning("%s %s failed: %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.status,
        content={"error": exc.kind, "detail": exc.message},
    )


def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "not-found",
                "detail": f"No route for {request.method} {request.url.path}",
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "http-error", "detail": str(exc.detail)},
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "bad-request", "detail": "invalid request parameters"},
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal",
            "detail": "An unexpected error occurred.",
        },
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CantorXError, cantorx_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, server_error_handler)
