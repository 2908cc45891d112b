"""
Run logger: one sync_log row per top-level sync invocation.

track_run wraps a pass and writes its row in a finally path, so the row is
written even when the pass blows up. A failure to write the row is logged
and swallowed; it must never mask the pass's own outcome.
"""
from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from shared.models.domain import SyncRun, SyncSummary, utcnow
from shared.models.enums import SyncRunStatus
from shared.models.orm import SyncRunORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.metrics import SYNC_DURATION, SYNC_RUNS

logger = get_logger(__name__)

MAX_REPORTED_ERRORS = 5


def derive_status(units_total: int, units_failed: int) -> SyncRunStatus:
    """success with no failures, error when every unit failed, partial otherwise."""
    if units_failed <= 0:
        return SyncRunStatus.SUCCESS
    if units_total > 0 and units_failed >= units_total:
        return SyncRunStatus.ERROR
    return SyncRunStatus.PARTIAL


def settle_status(summary: SyncSummary) -> SyncRunStatus:
    """Set the summary status from its unit counts; any reported error downgrades success to partial."""
    status = derive_status(summary.units_total, summary.units_failed)
    if status is SyncRunStatus.SUCCESS and summary.errors:
        status = SyncRunStatus.PARTIAL
    summary.status = status
    return status


def truncate_errors(errors: list[str], limit: int = MAX_REPORTED_ERRORS) -> list[str]:
    return [e[:500] for e in errors[:limit]]


class RunLogger:

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def record(
        self,
        sync_type: str,
        sport_type: str,
        records_synced: int,
        status: SyncRunStatus,
        error_message: Optional[str] = None,
    ) -> SyncRun:
        run = SyncRun(
            sync_type=sync_type,
            sport_type=sport_type,
            records_synced=records_synced,
            status=status,
            error_message=error_message,
            completed_at=utcnow(),
        )
        async with self._db.write_session() as session:
            row = SyncRunORM(
                sync_type=run.sync_type,
                sport_type=run.sport_type,
                records_synced=run.records_synced,
                status=run.status.value,
                error_message=run.error_message,
                completed_at=run.completed_at,
            )
            session.add(row)
            await session.flush()
            run.id = row.id
        return run

    @asynccontextmanager
    async def track_run(self, sync_type: str, sport_type: str) -> AsyncIterator[SyncSummary]:
        """
        Yield a SyncSummary for the pass to fill in; record it on exit.

        If the body raises or is cancelled, the summary is marked error and
        the exception propagates after the row is written.
        """
        summary = SyncSummary(sync_type=sync_type, sport_type=sport_type)
        started = time.perf_counter()
        logger.info("sync_run_started", sync_type=sync_type, sport_type=sport_type)
        try:
            yield summary
        except asyncio.CancelledError:
            summary.status = SyncRunStatus.ERROR
            summary.errors.insert(0, "cancelled")
            raise
        except Exception as exc:
            summary.status = SyncRunStatus.ERROR
            summary.errors.insert(0, f"{type(exc).__name__}: {exc}")
            raise
        finally:
            summary.duration_ms = int((time.perf_counter() - started) * 1000)
            summary.errors = truncate_errors(summary.errors)
            SYNC_RUNS.labels(sync_type=sync_type, status=summary.status.value).inc()
            SYNC_DURATION.labels(sync_type=sync_type).observe(summary.duration_ms / 1000)
            logger.info(
                "sync_run_finished",
                sync_type=sync_type,
                status=summary.status.value,
                synced=summary.synced,
                units_total=summary.units_total,
                units_failed=summary.units_failed,
                duration_ms=summary.duration_ms,
            )
            try:
                await self.record(
                    sync_type,
                    sport_type,
                    summary.synced,
                    summary.status,
                    "; ".join(summary.errors) or None,
                )
            except Exception as log_exc:
                logger.error("run_log_write_failed", sync_type=sync_type, error=str(log_exc))
