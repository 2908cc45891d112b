"""
Sync invocation endpoints.

Every route requires the cron bearer secret and runs one pass inline,
returning its SyncSummary. The pass writes its own sync_log row; a pass that
aborts surfaces through the exception handlers after that row is written.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.models.domain import SyncSummary
from shared.models.enums import EspnSportKey, EspnSyncMode, GolfSyncMode
from shared.utils.logging import get_logger

from api.dependencies import get_context, require_cron_secret
from scheduler.context import SyncContext
from scheduler.jobs.details import sync_match_details
from scheduler.jobs.espn import sync_espn
from scheduler.jobs.fixtures import backfill_fixtures, sync_fixtures_window
from scheduler.jobs.golf import sync_golf
from scheduler.jobs.live import sync_live
from scheduler.jobs.standings import sync_standings

logger = get_logger(__name__)
router = APIRouter(
    prefix="/v1/sync",
    tags=["sync"],
    dependencies=[Depends(require_cron_secret)],
)


@router.api_route("/fixtures", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_fixtures_route(ctx: SyncContext = Depends(get_context)) -> SyncSummary:
    return await sync_fixtures_window(ctx)


@router.api_route("/backfill", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_backfill_route(
    start: Optional[date] = Query(default=None, description="First day, YYYY-MM-DD"),
    end: Optional[date] = Query(default=None, description="Last day, YYYY-MM-DD"),
    ctx: SyncContext = Depends(get_context),
) -> SyncSummary:
    start = start or ctx.settings.backfill_default_start
    end = end or ctx.today()
    if start > end:
        raise HTTPException(status_code=422, detail=f"start {start} is after end {end}")
    logger.info("backfill_requested", start=start.isoformat(), end=end.isoformat())
    return await backfill_fixtures(ctx, start, end)


@router.api_route("/live", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_live_route(ctx: SyncContext = Depends(get_context)) -> SyncSummary:
    return await sync_live(ctx)


@router.api_route("/standings", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_standings_route(ctx: SyncContext = Depends(get_context)) -> SyncSummary:
    return await sync_standings(ctx)


@router.api_route("/match-details", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_match_details_route(ctx: SyncContext = Depends(get_context)) -> SyncSummary:
    return await sync_match_details(ctx)


@router.api_route("/golf", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_golf_route(
    mode: GolfSyncMode = Query(default=GolfSyncMode.LIVE),
    ctx: SyncContext = Depends(get_context),
) -> SyncSummary:
    return await sync_golf(ctx, mode)


@router.api_route("/espn", methods=["GET", "POST"], response_model=SyncSummary)
async def sync_espn_route(
    mode: EspnSyncMode = Query(default=EspnSyncMode.LIVE),
    sport: Optional[EspnSportKey] = Query(default=None, description="One sport; all configured when omitted"),
    date_: Optional[date] = Query(default=None, alias="date", description="Day for date mode, YYYY-MM-DD"),
    ctx: SyncContext = Depends(get_context),
) -> SyncSummary:
    if mode is EspnSyncMode.DATE and date_ is None:
        raise HTTPException(status_code=422, detail="mode=date needs a date")
    return await sync_espn(ctx, mode, [sport.value] if sport else None, date_)
