"""
Global middleware and connector error mapping.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from connectors.errors import (
    AuthorizationDenied,
    ConfigurationError,
    ConnectorError,
    InvalidState,
    ProviderExchangeError,
    ProviderRefreshError,
    ReauthorizationRequired,
    UnknownProviderError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = [
    (UnknownProviderError, 404),
    (InvalidState, 400),
    (AuthorizationDenied, 400),
    (ConfigurationError, 503),
    (ReauthorizationRequired, 409),
    (ProviderRefreshError, 502),
    (ProviderExchangeError, 502),
]


def status_for(exc: ConnectorError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def register_middleware(app: FastAPI) -> None:
    """Attach app-level middleware and exception handlers."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response

    @app.exception_handler(ConnectorError)
    async def connector_error_handler(request: Request, exc: ConnectorError) -> JSONResponse:
        status_code = status_for(exc)
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": exc.user_message},
        )
