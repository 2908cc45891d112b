"""
Live overlay engine.

Given one normalized live snapshot, locate each entry's cached fixture,
write its score/status/minute, then finalize same-day rows the snapshot no
longer reports. The engine never fetches; the caller hands it a snapshot it
already holds, so a failed fetch never reaches reconciliation.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Callable, Optional, Sequence

from shared.models.domain import LiveUpdate, utcnow
from shared.models.enums import Sport
from shared.utils.logging import get_logger
from shared.utils.metrics import LIVE_MATCH_OUTCOMES, ORPHANS_FINALIZED

from overlay.matcher import CrossProviderMatcher, FixtureCandidate, MatchStatus
from overlay.orphans import OrphanReconciler
from scheduler.engine.batching import run_batched
from store.reader import CacheReader
from store.upsert import CacheWriter

logger = get_logger(__name__)


@dataclass(frozen=True)
class PendingWrite:
    fixture_id: int
    update: LiveUpdate

    def __str__(self) -> str:
        return f"fixture {self.fixture_id} ({self.update.home_name} v {self.update.away_name})"


@dataclass
class OverlayReport:
    snapshot_size: int = 0
    matched: int = 0
    unmatched: int = 0
    ambiguous: int = 0
    applied: int = 0
    apply_failed: int = 0
    orphans_finalized: int = 0
    seen_ids: set[int] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)


class LiveOverlayEngine:

    def __init__(
        self,
        writer: CacheWriter,
        reader: CacheReader,
        reconciler: OrphanReconciler,
        matcher: Optional[CrossProviderMatcher] = None,
        concurrency: int = 10,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._writer = writer
        self._reader = reader
        self._reconciler = reconciler
        self._matcher = matcher or CrossProviderMatcher()
        self._concurrency = max(1, concurrency)
        self._sleep = sleep
        self._clock = clock

    def resolve(
        self,
        updates: Sequence[LiveUpdate],
        candidates: Sequence[FixtureCandidate],
        match_date: date,
        report: OverlayReport,
    ) -> list[PendingWrite]:
        """
        Match every update; return the writes that are safe to make.

        Two snapshot entries claiming the same row are treated like an
        ambiguous match: neither is written. Every row an entry could refer
        to still counts as seen, so reconciliation never finalizes it.
        """
        claims: dict[int, list[LiveUpdate]] = {}
        for update in updates:
            result = self._matcher.match(update, candidates, match_date)
            LIVE_MATCH_OUTCOMES.labels(outcome=result.status.value).inc()
            if result.status is MatchStatus.UNMATCHED:
                report.unmatched += 1
                logger.debug(
                    "live_match_unmatched",
                    league=update.league_code,
                    home=update.home_name,
                    away=update.away_name,
                )
                continue
            if result.status is MatchStatus.AMBIGUOUS:
                report.ambiguous += 1
                report.seen_ids.update(result.contenders)
                logger.warning(
                    "live_match_ambiguous",
                    league=update.league_code,
                    home=update.home_name,
                    away=update.away_name,
                    candidate_ids=result.contenders,
                )
                continue
            claims.setdefault(result.candidate.id, []).append(update)

        writes: list[PendingWrite] = []
        for fixture_id, claimants in claims.items():
            report.seen_ids.add(fixture_id)
            if len(claimants) > 1:
                report.ambiguous += len(claimants)
                logger.warning(
                    "live_match_ambiguous",
                    fixture_id=fixture_id,
                    provider_fixture_ids=[u.provider_fixture_id for u in claimants],
                )
                continue
            report.matched += 1
            writes.append(PendingWrite(fixture_id, claimants[0]))
        return writes

    async def apply(self, updates: Sequence[LiveUpdate], match_date: date) -> OverlayReport:
        report = OverlayReport(snapshot_size=len(updates))
        leagues = sorted({u.league_code for u in updates})
        candidates = await self._reader.candidates(Sport.SOCCER.value, match_date, leagues)
        writes = self.resolve(updates, candidates, match_date, report)

        async def write(pending: PendingWrite) -> bool:
            return await self._writer.apply_live_update(pending.fixture_id, pending.update)

        results = await run_batched(
            writes, self._concurrency, write, label="live_overlay", sleep=self._sleep
        )
        for res in results:
            if res.ok:
                report.applied += 1 if res.value else 0
            else:
                report.apply_failed += 1
                report.errors.append(res.error or str(res.item))

        await self.reconcile(match_date, report)
        logger.info(
            "live_overlay_applied",
            match_date=match_date.isoformat(),
            snapshot=report.snapshot_size,
            matched=report.matched,
            unmatched=report.unmatched,
            ambiguous=report.ambiguous,
            applied=report.applied,
            orphans=report.orphans_finalized,
        )
        return report

    async def reconcile(self, match_date: date, report: OverlayReport) -> list[FixtureCandidate]:
        """Force rows that dropped out of the snapshot past their cutoff to FT."""
        rows = await self._reader.live_rows(Sport.SOCCER.value, match_date)
        orphans = self._reconciler.select_orphans(rows, report.seen_ids, self._clock())
        if not orphans:
            return []
        report.orphans_finalized = await self._writer.mark_finished([o.id for o in orphans])
        for orphan in orphans:
            ORPHANS_FINALIZED.labels(league=orphan.league_code).inc()
            logger.info(
                "orphan_finalized",
                fixture_id=orphan.id,
                league=orphan.league_code,
                kickoff=orphan.kickoff.isoformat(),
                last_status=orphan.status.value,
            )
        return orphans
