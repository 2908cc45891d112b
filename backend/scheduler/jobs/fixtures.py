"""
Fixture ingestion passes: the rolling window sync and date-range backfill.

Both fetch raw football-data matches unit by unit through run_batched,
normalize them, then upsert fixtures and the teams they reference.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional, Sequence

from shared.errors import MalformedRecord
from shared.models.domain import Fixture, SyncSummary
from shared.models.enums import Sport, SyncType
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import (
    normalize_football_data_match,
    team_abbreviations,
    teams_from_fixtures,
)
from scheduler.context import SyncContext
from scheduler.engine.batching import BatchItemResult, run_batched
from store.run_log import settle_status

logger = get_logger(__name__)


@dataclass(frozen=True)
class LeagueWindow:
    league_code: str
    date_from: date
    date_to: date

    def __str__(self) -> str:
        return f"{self.league_code} {self.date_from}..{self.date_to}"


def split_range(start: date, end: date, max_days: int) -> list[tuple[date, date]]:
    """Inclusive [start, end] cut into windows of at most ``max_days`` days."""
    windows: list[tuple[date, date]] = []
    cursor = start
    while cursor <= end:
        window_end = min(cursor + timedelta(days=max_days - 1), end)
        windows.append((cursor, window_end))
        cursor = window_end + timedelta(days=1)
    return windows


def days_between(start: date, end: date) -> list[date]:
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


async def _ingest(
    ctx: SyncContext,
    results: Sequence[BatchItemResult[Any, list[tuple[dict[str, Any], Optional[str]]]]],
    summary: SyncSummary,
) -> None:
    """Normalize fetched units, upsert, and fill in the summary."""
    raws: list[dict[str, Any]] = []
    fixtures: list[Fixture] = []
    malformed = 0
    fetch_failed = 0
    for res in results:
        if not res.ok:
            fetch_failed += 1
            summary.errors.append(res.error or str(res.item))
            continue
        for raw, league_code in res.value or []:
            try:
                fixtures.append(
                    normalize_football_data_match(raw, ctx.settings.reference_timezone, league_code)
                )
                raws.append(raw)
            except MalformedRecord as exc:
                malformed += 1
                summary.errors.append(str(exc))
                logger.warning("fixture_malformed", error=str(exc))

    fixture_result = await ctx.writer.upsert_fixtures(fixtures)
    team_result = await ctx.writer.upsert_teams(teams_from_fixtures(fixtures, team_abbreviations(raws)))
    summary.errors.extend(fixture_result.errors)
    summary.errors.extend(team_result.errors)

    summary.synced = fixture_result.written
    summary.units_total = len(results) + fixture_result.total_batches
    summary.units_failed = fetch_failed + fixture_result.failed_batches
    settle_status(summary)
    summary.details.update({
        "fixtures": len(fixtures),
        "teams": team_result.written,
        "malformed": malformed,
        "fetch_units_failed": fetch_failed,
        "failed_batches": fixture_result.failed_batches,
    })


async def sync_fixtures_window(ctx: SyncContext, today: Optional[date] = None) -> SyncSummary:
    """
    Sweep each configured league over [today - days_back, today + days_ahead].

    Leagues run one window at a time (chunk size 1) so the football-data gate
    paces the sweep; each window stays within the provider's range limit.
    """
    settings = ctx.settings
    today = today or ctx.today()
    start = today - timedelta(days=settings.fixtures_days_back)
    end = today + timedelta(days=settings.fixtures_days_ahead)
    units = [
        LeagueWindow(code, w_from, w_to)
        for code in settings.sync_leagues
        for w_from, w_to in split_range(start, end, settings.fixtures_window_max_days)
    ]
    provider = ctx.providers.football_data

    async def fetch(unit: LeagueWindow) -> list[tuple[dict[str, Any], Optional[str]]]:
        matches = await provider.competition_matches(unit.league_code, unit.date_from, unit.date_to)
        return [(raw, unit.league_code) for raw in matches]

    async with ctx.run_logger.track_run(SyncType.FIXTURES.value, Sport.SOCCER.value) as summary:
        await ctx.db.ping()
        results = await run_batched(
            units, 1, fetch, settings.league_sweep_delay_s, label="fixtures_window", sleep=ctx.sleep
        )
        await _ingest(ctx, results, summary)
        summary.details.update({"date_from": start.isoformat(), "date_to": end.isoformat()})
    return summary


async def backfill_fixtures(ctx: SyncContext, start: date, end: date) -> SyncSummary:
    """Re-ingest every configured competition day by day over [start, end]."""
    if start > end:
        raise ValueError(f"backfill start {start} is after end {end}")
    settings = ctx.settings
    provider = ctx.providers.football_data

    async def fetch(day: date) -> list[tuple[dict[str, Any], Optional[str]]]:
        matches = await provider.matches_between(day, day, settings.sync_leagues)
        return [(raw, None) for raw in matches]

    async with ctx.run_logger.track_run(SyncType.BACKFILL.value, Sport.SOCCER.value) as summary:
        await ctx.db.ping()
        results = await run_batched(
            days_between(start, end),
            settings.backfill_batch_days,
            fetch,
            settings.backfill_inter_batch_delay_s,
            label="backfill",
            sleep=ctx.sleep,
        )
        await _ingest(ctx, results, summary)
        summary.details.update({"start": start.isoformat(), "end": end.isoformat()})
    return summary
