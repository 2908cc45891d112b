"""
Error taxonomy for the sync engine.

Per-unit failures (one date, one league window, one tour, one event) are
caught at the unit boundary and reported in the run summary; only failures
before a pass reaches its core loop abort the invocation.
"""
from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for all sync engine errors."""


class UpstreamUnavailable(SyncError):
    """Transport or HTTP failure from a provider."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None) -> None:
        self.provider = provider
        self.status_code = status_code
        detail = f"{provider}: {message}"
        if status_code is not None:
            detail = f"{provider}: HTTP {status_code} {message}".rstrip()
        super().__init__(detail)


class RateLimited(UpstreamUnavailable):
    """Provider kept throttling after the bounded number of waits."""

    def __init__(self, provider: str, retry_after_s: float, attempts: int) -> None:
        self.retry_after_s = retry_after_s
        self.attempts = attempts
        super().__init__(
            provider,
            f"rate limited after {attempts} attempts (next wait {retry_after_s:.0f}s)",
            status_code=429,
        )


class MalformedRecord(SyncError):
    """A raw provider record lacks the fields needed to build a cache row."""

    def __init__(self, provider: str, reason: str, record_id: object = None) -> None:
        self.provider = provider
        self.reason = reason
        self.record_id = record_id
        where = f" (id={record_id})" if record_id is not None else ""
        super().__init__(f"{provider}: malformed record{where}: {reason}")


class CacheWriteFailed(SyncError):
    """A batch upsert was rejected by the store."""

    def __init__(self, table: str, batch_index: int, rows: int, cause: str) -> None:
        self.table = table
        self.batch_index = batch_index
        self.rows = rows
        super().__init__(f"{table}: batch {batch_index} ({rows} rows) failed: {cause}")


class Unauthorized(SyncError):
    """Invocation rejected before any work began."""
