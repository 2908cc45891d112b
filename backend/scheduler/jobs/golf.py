"""
Golf sync across tours.

live: upsert the scoreboard's current events, then refresh the full
      leaderboard of events in progress.
full: refresh every current event's leaderboard and also store rankings,
      stats leaders and the season schedule per tour.

Tours run one at a time. Inside a tour, a failing event or standings fetch
is recorded and skipped; only a failed scoreboard fetch fails the tour.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shared.errors import SyncError
from shared.models.domain import GolfEvent, GolfStandings, PayloadEnvelope, SyncSummary
from shared.models.enums import GolfDataType, GolfEventStatus, GolfSyncMode, GolfTour, Sport, SyncType
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import normalize_golf_event
from scheduler.context import SyncContext
from scheduler.engine.batching import run_batched
from store.run_log import settle_status

logger = get_logger(__name__)


@dataclass
class TourOutcome:
    events_synced: int = 0
    standings_synced: int = 0
    errors: list[str] = field(default_factory=list)


async def _sync_tour(ctx: SyncContext, tour: str, mode: GolfSyncMode) -> TourOutcome:
    espn = ctx.providers.espn_golf
    outcome = TourOutcome()
    scoreboard = await espn.scoreboard(tour)

    events: dict[str, GolfEvent] = {}
    for raw in scoreboard.get("events") or []:
        try:
            event = normalize_golf_event(raw, tour)
        except SyncError as exc:
            outcome.errors.append(f"{tour}: {exc}")
            continue
        events[event.provider_event_id] = event

    if mode is GolfSyncMode.FULL:
        detail_ids = list(events)
    else:
        detail_ids = [eid for eid, ev in events.items() if ev.status is GolfEventStatus.IN_PROGRESS]

    for event_id in detail_ids:
        try:
            summary = await espn.summary(tour, event_id)
            events[event_id] = normalize_golf_event(summary, tour, event_id=event_id)
        except SyncError as exc:
            outcome.errors.append(f"{tour} event {event_id}: {exc}")
        await ctx.sleep(ctx.settings.golf_delay_s)

    written = await ctx.writer.upsert_golf_events(list(events.values()))
    outcome.events_synced = written.written
    outcome.errors.extend(written.errors)

    if mode is GolfSyncMode.FULL:
        standings = await _collect_standings(ctx, tour, scoreboard, outcome)
        stored = await ctx.writer.upsert_golf_standings(standings)
        outcome.standings_synced = stored.written
        outcome.errors.extend(stored.errors)

    logger.info(
        "golf_tour_synced",
        tour=tour,
        mode=mode.value,
        events=outcome.events_synced,
        standings=outcome.standings_synced,
        errors=len(outcome.errors),
    )
    return outcome


async def _collect_standings(
    ctx: SyncContext,
    tour: str,
    scoreboard: dict[str, Any],
    outcome: TourOutcome,
) -> list[GolfStandings]:
    espn = ctx.providers.espn_golf
    items: list[GolfStandings] = []
    leagues = scoreboard.get("leagues") or [{}]
    items.append(GolfStandings(
        tour=tour,
        data_type=GolfDataType.SCHEDULE,
        envelope=PayloadEnvelope(payload={"calendar": leagues[0].get("calendar") or []}),
    ))
    if not GolfTour(tour).has_stats:
        return items

    fetchers = ((GolfDataType.RANKINGS, espn.statistics), (GolfDataType.LEADERS, espn.leaders))
    for data_type, fetch in fetchers:
        try:
            payload = await fetch(tour)
        except SyncError as exc:
            outcome.errors.append(f"{tour} {data_type.value}: {exc}")
            continue
        items.append(GolfStandings(tour=tour, data_type=data_type, envelope=PayloadEnvelope(payload=payload)))
        await ctx.sleep(ctx.settings.golf_delay_s)
    return items


async def sync_golf(ctx: SyncContext, mode: GolfSyncMode = GolfSyncMode.LIVE) -> SyncSummary:
    async def run_tour(tour: str) -> TourOutcome:
        return await _sync_tour(ctx, tour, mode)

    async with ctx.run_logger.track_run(SyncType.GOLF.value, Sport.GOLF.value) as summary:
        await ctx.db.ping()
        tours = list(ctx.settings.golf_tours)
        results = await run_batched(
            tours, 1, run_tour, ctx.settings.golf_delay_s, label="golf_tours", sleep=ctx.sleep
        )
        per_tour: dict[str, dict[str, Any]] = {}
        for res in results:
            if not res.ok:
                summary.errors.append(res.error or res.item)
                per_tour[res.item] = {"error": res.error}
                continue
            outcome = res.value
            summary.synced += outcome.events_synced + outcome.standings_synced
            summary.errors.extend(outcome.errors)
            per_tour[res.item] = {
                "events": outcome.events_synced,
                "standings": outcome.standings_synced,
                "errors": len(outcome.errors),
            }
        summary.units_total = len(results)
        summary.units_failed = sum(1 for r in results if not r.ok)
        settle_status(summary)
        summary.details.update({"mode": mode.value, "tours": per_tour})
    return summary
