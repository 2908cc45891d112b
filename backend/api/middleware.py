"""
API middleware stack.

- Request ID injection (X-Request-ID header), bound into the structlog
  context so every log line a sync pass emits carries the invoking request
- Request logging; sync invocations are logged with their trigger
- Exception handlers mapping the sync error taxonomy onto HTTP
- CORS configuration
"""
from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.errors import SyncError, Unauthorized, UpstreamUnavailable
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# Health checks hit these every few seconds.
_QUIET_PATHS = ("/health", "/ready")
_SYNC_PREFIX = "/v1/sync/"


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns X-Request-ID and binds it for the duration of the request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in _QUIET_PATHS:
            return await call_next(request)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        if path.startswith(_SYNC_PREFIX):
            logger.info(
                "sync_invocation",
                sync=path[len(_SYNC_PREFIX):],
                method=request.method,
                status=response.status_code,
                duration_ms=duration_ms,
                trigger=request.headers.get("user-agent", "unknown"),
            )
        else:
            logger.info(
                "http_request",
                method=request.method,
                path=path,
                status=response.status_code,
                duration_ms=duration_ms,
                client=request.client.host if request.client else "unknown",
            )
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Map sync errors onto HTTP responses."""

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"error": "unauthorized", "message": str(exc) or "Unauthorized"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(UpstreamUnavailable)
    async def upstream_handler(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
        logger.warning("sync_upstream_unavailable", path=request.url.path, provider=exc.provider, error=str(exc))
        return JSONResponse(
            status_code=502,
            content={
                "error": "upstream_unavailable",
                "provider": exc.provider,
                "message": str(exc),
                "request_id": _request_id(request),
            },
        )

    @app.exception_handler(SyncError)
    async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
        logger.error("sync_failed", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": "sync_failed", "message": str(exc), "request_id": _request_id(request)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": _request_id(request),
            },
        )


def setup_cors(app: FastAPI) -> None:
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )


def setup_middleware(app: FastAPI) -> None:
    """Apply all middleware to the FastAPI app in the correct order."""
    # Added last runs first: request id wraps logging so log lines carry it.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    setup_cors(app)
    setup_exception_handlers(app)
