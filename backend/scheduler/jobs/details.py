"""
Match-details enrichment.

Finished fixtures without cached details get the full football-data match
record and its head-to-head history, stored as a versioned envelope. The
pass is slow on purpose: one fixture at a time with a long pause, since
each fixture costs two requests against a 10 req/min quota.
"""
from __future__ import annotations

from dataclasses import dataclass

from shared.models.domain import PAYLOAD_SCHEMA_VERSION, SyncSummary
from shared.models.enums import Sport, SyncType

from scheduler.context import SyncContext
from scheduler.engine.batching import run_batched
from store.run_log import settle_status


@dataclass(frozen=True)
class DetailTarget:
    fixture_id: int
    provider_id: int

    def __str__(self) -> str:
        return f"match {self.provider_id}"


async def sync_match_details(ctx: SyncContext) -> SyncSummary:
    settings = ctx.settings
    provider = ctx.providers.football_data

    async def enrich(target: DetailTarget) -> bool:
        match = await provider.match(target.provider_id)
        h2h = await provider.head_to_head(target.provider_id, limit=settings.head2head_limit)
        envelope = {
            "schema_version": PAYLOAD_SCHEMA_VERSION,
            "payload": {
                "match": match,
                "head2head": h2h,
                "fetched_at": ctx.clock().isoformat(),
            },
        }
        return await ctx.writer.set_match_details(target.fixture_id, envelope)

    async with ctx.run_logger.track_run(SyncType.MATCH_DETAILS.value, Sport.SOCCER.value) as summary:
        rows = await ctx.reader.fixtures_needing_details(Sport.SOCCER.value, settings.details_max_per_run)
        targets = [DetailTarget(fixture_id=r.id, provider_id=r.provider_id) for r in rows]
        results = await run_batched(
            targets, 1, enrich, settings.details_delay_s, label="match_details", sleep=ctx.sleep
        )
        summary.synced = sum(1 for r in results if r.ok and r.value)
        summary.units_total = len(results)
        summary.units_failed = sum(1 for r in results if not r.ok)
        summary.errors.extend(r.error for r in results if r.error)
        settle_status(summary)
        summary.details["candidates"] = len(targets)
    return summary
