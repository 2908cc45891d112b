"""
Scheduler service for the fixtures sync engine.

Runs every periodic sync pass on its own interval. Each pass runs as its
own task so a slow sweep (the fixtures window takes minutes under the
football-data quota) never delays the live overlay. A pass that is still
running when it comes due again is not started twice.

With Redis configured, only the instance holding the scheduler leader lock
runs passes.
"""
from __future__ import annotations

import argparse
import asyncio
import signal
import time
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import SyncSummary
from shared.models.enums import EspnSyncMode, GolfSyncMode
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server
from shared.utils.redis_manager import RedisManager

from scheduler.context import SyncContext, open_runtime
from scheduler.jobs.details import sync_match_details
from scheduler.jobs.espn import sync_espn
from scheduler.jobs.fixtures import backfill_fixtures, sync_fixtures_window
from scheduler.jobs.golf import sync_golf
from scheduler.jobs.live import sync_live
from scheduler.jobs.standings import sync_standings

logger = get_logger(__name__)

JobFn = Callable[[SyncContext], Awaitable[SyncSummary]]


async def _golf_live(ctx: SyncContext) -> SyncSummary:
    return await sync_golf(ctx, GolfSyncMode.LIVE)


async def _golf_full(ctx: SyncContext) -> SyncSummary:
    return await sync_golf(ctx, GolfSyncMode.FULL)


async def _espn_live(ctx: SyncContext) -> SyncSummary:
    return await sync_espn(ctx, EspnSyncMode.LIVE)


async def _espn_full(ctx: SyncContext) -> SyncSummary:
    return await sync_espn(ctx, EspnSyncMode.FULL)


@dataclass
class PeriodicJob:
    name: str
    interval_s: float
    run: JobFn
    next_run_at: float = 0.0


def build_jobs(settings: Settings) -> list[PeriodicJob]:
    return [
        PeriodicJob("live", settings.live_interval_s, sync_live),
        PeriodicJob("golf_live", settings.golf_live_interval_s, _golf_live),
        PeriodicJob("espn_live", settings.espn_live_interval_s, _espn_live),
        PeriodicJob("fixtures", settings.fixtures_interval_s, sync_fixtures_window),
        PeriodicJob("golf_full", settings.golf_full_interval_s, _golf_full),
        PeriodicJob("espn_full", settings.espn_full_interval_s, _espn_full),
        PeriodicJob("standings", settings.standings_interval_s, sync_standings),
        PeriodicJob("match_details", settings.details_interval_s, sync_match_details),
    ]


class SchedulerService:
    """
    Main scheduler that:
    1. Acquires leadership via Redis when Redis is configured
    2. Starts each due job as a task, one at a time per job
    3. Cancels running jobs on shutdown or lost leadership
    """

    def __init__(
        self,
        ctx: SyncContext,
        jobs: Sequence[PeriodicJob],
        redis: Optional[RedisManager] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ctx = ctx
        self._settings = ctx.settings
        self._jobs = list(jobs)
        self._redis = redis
        self._clock = clock
        self._instance_id = self._settings.instance_id or str(uuid.uuid4())[:8]
        self._running: dict[str, asyncio.Task[None]] = {}
        self._is_leader = False
        self._shutdown = asyncio.Event()

    @property
    def running(self) -> dict[str, asyncio.Task[None]]:
        return self._running

    # ── Leader election ─────────────────────────────────────────────────

    async def _acquire_leadership(self) -> bool:
        """Attempt to acquire or renew scheduler leadership."""
        if self._redis is None:
            return True
        ttl = self._settings.scheduler_leader_ttl_s
        if self._is_leader:
            renewed = await self._redis.renew_leader("scheduler", self._instance_id, ttl)
            if not renewed:
                logger.warning("leadership_lost", instance_id=self._instance_id)
                self._is_leader = False
                await self.stop_all()
            return renewed

        acquired = await self._redis.try_acquire_leader("scheduler", self._instance_id, ttl)
        if acquired:
            self._is_leader = True
            logger.info("leadership_acquired", instance_id=self._instance_id)
        return acquired

    # ── Job dispatch ────────────────────────────────────────────────────

    async def _run_job(self, job: PeriodicJob) -> None:
        try:
            summary = await job.run(self._ctx)
            logger.info("scheduler_job_done", job=job.name, status=summary.status.value)
        except asyncio.CancelledError:
            logger.warning("scheduler_job_cancelled", job=job.name)
            raise
        except Exception as exc:
            # Already recorded in sync_log by the pass; the schedule carries on.
            logger.error("scheduler_job_failed", job=job.name, error=str(exc), exc_info=True)
        finally:
            self._running.pop(job.name, None)

    def dispatch_due(self) -> list[str]:
        """Start every due job that is not already running. Returns their names."""
        now = self._clock()
        started: list[str] = []
        for job in self._jobs:
            if now < job.next_run_at:
                continue
            if job.name in self._running:
                logger.debug("scheduler_job_still_running", job=job.name)
                continue
            job.next_run_at = now + job.interval_s
            self._running[job.name] = asyncio.create_task(self._run_job(job), name=f"sync:{job.name}")
            started.append(job.name)
        return started

    async def stop_all(self) -> None:
        """Cancel running jobs and wait for them to unwind."""
        tasks = list(self._running.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._running.clear()

    # ── Main loop ───────────────────────────────────────────────────────

    async def run(self) -> None:
        while not self._shutdown.is_set():
            try:
                if not await self._acquire_leadership():
                    await asyncio.sleep(self._settings.scheduler_leader_renew_s)
                    continue
                self.dispatch_due()
                await asyncio.sleep(self._settings.scheduler_tick_interval_s)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("scheduler_loop_error", error=str(exc), exc_info=True)
                await asyncio.sleep(2.0)

    def request_shutdown(self) -> None:
        self._shutdown.set()

    async def close(self) -> None:
        await self.stop_all()
        if self._redis is not None and self._is_leader:
            await self._redis.release_leader("scheduler", self._instance_id)
            self._is_leader = False


# ── Entrypoint ──────────────────────────────────────────────────────────

ONCE_CHOICES = (
    "fixtures",
    "backfill",
    "live",
    "standings",
    "match_details",
    "golf_live",
    "golf_full",
    "espn_live",
    "espn_full",
)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fixtures sync scheduler")
    parser.add_argument("--once", choices=ONCE_CHOICES, help="run a single pass and exit")
    parser.add_argument("--start", type=date.fromisoformat, help="backfill start date (YYYY-MM-DD)")
    parser.add_argument("--end", type=date.fromisoformat, help="backfill end date (YYYY-MM-DD)")
    return parser.parse_args(argv)


async def run_once(ctx: SyncContext, job_name: str, start: Optional[date] = None, end: Optional[date] = None) -> SyncSummary:
    if job_name == "backfill":
        return await backfill_fixtures(
            ctx, start or ctx.settings.backfill_default_start, end or ctx.today()
        )
    jobs = {job.name: job for job in build_jobs(ctx.settings)}
    return await jobs[job_name].run(ctx)


async def main(argv: Optional[Sequence[str]] = None) -> None:
    """Scheduler service entrypoint."""
    args = parse_args(argv)
    settings = get_settings()
    setup_logging("scheduler", settings=settings)

    runtime = await open_runtime(settings)
    try:
        if args.once:
            summary = await run_once(runtime.ctx, args.once, args.start, args.end)
            logger.info("scheduler_once_done", job=args.once, **summary.model_dump(mode="json"))
            return

        start_metrics_server(settings.metrics_port)
        service = SchedulerService(runtime.ctx, build_jobs(settings), redis=runtime.redis)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, service.request_shutdown)

        logger.info("scheduler_service_started", instance_id=settings.instance_id)
        try:
            await service.run()
        finally:
            await service.close()
    finally:
        await runtime.close()
        logger.info("scheduler_service_stopped")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
