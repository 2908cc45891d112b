"""
Dependency injection for the API service.
Provides the shared SyncContext and the sync-route authorization check.
"""
from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Header

from shared.config import get_settings
from shared.errors import Unauthorized
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from scheduler.context import SyncContext
from store.reader import CacheReader

logger = get_logger(__name__)

# Module-level singleton, initialized at startup
_ctx: SyncContext | None = None


def init_dependencies(ctx: SyncContext) -> None:
    """Initialize the module-level context. Called once at startup."""
    global _ctx
    _ctx = ctx


def reset_dependencies() -> None:
    global _ctx
    _ctx = None


def get_context() -> SyncContext:
    """FastAPI dependency: returns the shared SyncContext."""
    if _ctx is None:
        raise RuntimeError("SyncContext not initialized, call init_dependencies first")
    return _ctx


def get_db() -> DatabaseManager:
    return get_context().db


def get_reader() -> CacheReader:
    return get_context().reader


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Reject a sync invocation unless it carries ``Bearer <FX_CRON_SECRET>``.

    With no secret configured every call is rejected.
    """
    secret = get_settings().cron_secret
    if not secret:
        logger.warning("sync_auth_unconfigured")
        raise Unauthorized("sync secret is not configured")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip().encode(), secret.encode()):
        logger.warning("sync_auth_rejected")
        raise Unauthorized("invalid or missing bearer token")
