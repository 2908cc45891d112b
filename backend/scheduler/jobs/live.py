"""
Live overlay pass: one API-Football snapshot applied onto today's cache.

If the snapshot fetch fails the pass fails with it; no reconciliation runs
without a snapshot.
"""
from __future__ import annotations

from typing import Any

from shared.errors import MalformedRecord
from shared.models.domain import LiveUpdate, SyncSummary
from shared.models.enums import Sport, SyncType
from shared.models.leagues import code_for_api_football_id
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import normalize_live_update
from overlay.engine import LiveOverlayEngine
from overlay.orphans import OrphanReconciler
from scheduler.context import SyncContext
from store.run_log import settle_status

logger = get_logger(__name__)


def build_engine(ctx: SyncContext) -> LiveOverlayEngine:
    settings = ctx.settings
    reconciler = OrphanReconciler(
        settings.cup_competitions,
        cup_cutoff_min=settings.orphan_cutoff_cup_min,
        league_cutoff_min=settings.orphan_cutoff_league_min,
    )
    return LiveOverlayEngine(
        ctx.writer,
        ctx.reader,
        reconciler,
        concurrency=settings.live_update_concurrency,
        sleep=ctx.sleep,
        clock=ctx.clock,
    )


def normalize_snapshot(raw_items: list[dict[str, Any]], summary: SyncSummary) -> list[LiveUpdate]:
    """Keep entries from tracked competitions; malformed ones are reported."""
    updates: list[LiveUpdate] = []
    untracked = 0
    for raw in raw_items:
        league_code = code_for_api_football_id((raw.get("league") or {}).get("id"))
        if league_code is None:
            untracked += 1
            continue
        try:
            updates.append(normalize_live_update(raw, league_code))
        except MalformedRecord as exc:
            summary.errors.append(str(exc))
            logger.warning("live_record_malformed", error=str(exc))
    summary.details["untracked"] = untracked
    return updates


async def sync_live(ctx: SyncContext) -> SyncSummary:
    async with ctx.run_logger.track_run(SyncType.LIVE.value, Sport.SOCCER.value) as summary:
        raw_items = await ctx.providers.api_football.live_fixtures()
        updates = normalize_snapshot(raw_items, summary)
        match_date = ctx.today()
        report = await build_engine(ctx).apply(updates, match_date)

        summary.synced = report.applied + report.orphans_finalized
        summary.units_total = report.matched
        summary.units_failed = report.apply_failed
        summary.errors.extend(report.errors)
        settle_status(summary)
        summary.details.update({
            "match_date": match_date.isoformat(),
            "snapshot": report.snapshot_size,
            "matched": report.matched,
            "unmatched": report.unmatched,
            "ambiguous": report.ambiguous,
            "applied": report.applied,
            "orphans_finalized": report.orphans_finalized,
        })
    return summary
