"""League tables from football-data, one competition at a time."""
from __future__ import annotations

from shared.models.domain import StandingsSnapshot, SyncSummary
from shared.models.enums import Sport, SyncType
from shared.models.leagues import League, league_for_code

from ingest.normalization.normalizer import normalize_standings
from scheduler.context import SyncContext
from scheduler.engine.batching import run_batched
from store.run_log import settle_status


async def sync_standings(ctx: SyncContext) -> SyncSummary:
    leagues = [
        lg for lg in (league_for_code(code) for code in ctx.settings.sync_leagues)
        if lg is not None and not lg.is_cup
    ]
    provider = ctx.providers.football_data

    async def fetch(league: League) -> StandingsSnapshot:
        return normalize_standings(await provider.standings(league.code), league)

    async with ctx.run_logger.track_run(SyncType.STANDINGS.value, Sport.SOCCER.value) as summary:
        await ctx.db.ping()
        results = await run_batched(
            leagues,
            1,
            fetch,
            ctx.settings.league_sweep_delay_s,
            label="standings",
            sleep=ctx.sleep,
        )
        snapshots = [r.value for r in results if r.ok and r.value is not None]
        failed = [r for r in results if not r.ok]
        summary.errors.extend(r.error or str(r.item.code) for r in failed)

        written = await ctx.writer.upsert_standings(snapshots)
        summary.errors.extend(written.errors)
        summary.synced = written.written
        summary.units_total = len(leagues) + written.total_batches
        summary.units_failed = len(failed) + written.failed_batches
        settle_status(summary)
        summary.details["leagues"] = [s.league_code for s in snapshots]
    return summary

