"""
FastAPI application factory for the fixtures sync API.

Creates the app with:
- Cache read routes
- Secret-protected sync invocation routes
- Middleware stack
- Health and readiness endpoints
- Lifespan management (connect store, Redis and providers; tear down)
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, Union

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import get_context, init_dependencies, reset_dependencies
from api.middleware import setup_middleware
from api.routes.cache import router as cache_router
from api.routes.sync import router as sync_router
from scheduler.context import Runtime, open_runtime

logger = get_logger(__name__)

_CONNECT_RETRY_ATTEMPTS = 5
_CONNECT_RETRY_BASE_DELAY_S = 1.0


async def _connect_with_retry(connect_fn: Callable[[], Awaitable[Runtime]], name: str) -> Runtime:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, _CONNECT_RETRY_ATTEMPTS + 1):
        try:
            return await connect_fn()
        except Exception as exc:
            if attempt == _CONNECT_RETRY_ATTEMPTS:
                raise
            delay = _CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=_CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)
    raise RuntimeError(f"{name}: no connection attempts made")


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing; tests call init_dependencies themselves."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Startup connects the store (creating tables), Redis when configured and
    the provider clients; shutdown releases them.
    """
    settings = get_settings()
    setup_logging("api", settings=settings)
    start_metrics_server(settings.metrics_port)

    runtime = await _connect_with_retry(lambda: open_runtime(settings), "runtime")
    init_dependencies(runtime.ctx)
    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        redis=runtime.redis is not None,
    )

    yield

    reset_dependencies()
    await runtime.close()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="Fixtures Sync API",
        description="Sports fixtures sync and reconciliation engine",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(cache_router)
    app.include_router(sync_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, Union[str, bool]]:
        """Readiness check: pings the store."""
        try:
            db_ok = await get_context().db.ping()
        except Exception as exc:
            logger.warning("readiness_db_failed", error=str(exc))
            db_ok = False
        return {"status": "ok" if db_ok else "degraded", "database": db_ok}

    return app


app = create_app()
