"""
Cache upsert layer.

Every cache table is written through INSERT .. ON CONFLICT DO UPDATE keyed
by the table's natural identity, so re-running a pass updates rows in place
and never duplicates them. An update replaces every tracked column with the
freshly normalized value.

Rows are written in fixed-size batches, one transaction per batch. A
rejected batch is logged and left out of the written count; the remaining
batches still run.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from shared.errors import CacheWriteFailed
from shared.models.domain import (
    Fixture,
    Game,
    GolfEvent,
    GolfStandings,
    LiveUpdate,
    StandingsSnapshot,
    Team,
    UpsertResult,
    utcnow,
)
from shared.models.enums import LIVE_STATUS_VALUES, FixtureStatus
from shared.models.orm import (
    Base,
    FixtureORM,
    GameORM,
    GolfEventORM,
    GolfStandingsORM,
    StandingsORM,
    TeamORM,
)
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_BATCH_FAILURES, RECORDS_UPSERTED

from scheduler.engine.batching import chunked

logger = get_logger(__name__)

# Owned by the enrichment pass; ingestion must not reset it.
_FIXTURE_PRESERVED = frozenset({"match_details", "created_at"})


class CacheWriter:
    """Writes normalized records into the cache tables."""

    def __init__(
        self,
        db: DatabaseManager,
        batch_size: int = 100,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._batch_size = batch_size
        self._clock = clock

    # ── Generic keyed upsert ────────────────────────────────────────────
    def _insert(self, model: type[Base]):
        if self._db.engine.dialect.name == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    async def _execute_batch(
        self,
        model: type[Base],
        rows: list[dict[str, Any]],
        conflict_cols: Sequence[str],
        preserved: frozenset[str],
    ) -> None:
        stmt = self._insert(model).values(rows)
        set_ = {
            col: stmt.excluded[col]
            for col in rows[0]
            if col not in conflict_cols and col not in preserved
        }
        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_cols), set_=set_)
        async with self._db.write_session() as session:
            await session.execute(stmt)

    async def _upsert_rows(
        self,
        model: type[Base],
        rows: Iterable[dict[str, Any]],
        conflict_cols: Sequence[str],
        preserved: frozenset[str] = frozenset(),
    ) -> UpsertResult:
        table = model.__tablename__
        now = self._clock()
        # Last occurrence wins; one statement may not touch a key twice.
        keyed: dict[tuple, dict[str, Any]] = {}
        for row in rows:
            keyed[tuple(row[c] for c in conflict_cols)] = {**row, "updated_at": now}
        if not keyed:
            return UpsertResult()

        result = UpsertResult()
        batches = chunked(list(keyed.values()), self._batch_size)
        result.total_batches = len(batches)
        for index, batch in enumerate(batches, start=1):
            try:
                await self._execute_batch(model, batch, conflict_cols, preserved)
            except SQLAlchemyError as exc:
                err = CacheWriteFailed(table, index, len(batch), str(exc).splitlines()[0])
                logger.error(
                    "cache_batch_failed",
                    table=table,
                    batch=index,
                    batches=len(batches),
                    rows=len(batch),
                    error=str(err),
                )
                CACHE_BATCH_FAILURES.labels(table=table).inc()
                result.failed_batches += 1
                result.errors.append(str(err))
                continue
            result.written += len(batch)
        RECORDS_UPSERTED.labels(table=table).inc(result.written)
        logger.info(
            "cache_upsert_complete",
            table=table,
            written=result.written,
            failed_batches=result.failed_batches,
        )
        return result

    # ── Typed entry points ──────────────────────────────────────────────
    async def upsert_fixtures(self, fixtures: Sequence[Fixture]) -> UpsertResult:
        return await self._upsert_rows(
            FixtureORM,
            (f.to_row() for f in fixtures),
            ("provider_id", "sport_type"),
            preserved=_FIXTURE_PRESERVED,
        )

    async def upsert_teams(self, teams: Sequence[Team]) -> UpsertResult:
        return await self._upsert_rows(TeamORM, (t.to_row() for t in teams), ("provider_id", "sport_type"))

    async def upsert_standings(self, snapshots: Sequence[StandingsSnapshot]) -> UpsertResult:
        return await self._upsert_rows(
            StandingsORM,
            (s.to_row() for s in snapshots),
            ("league_code", "season", "sport_type"),
        )

    async def upsert_golf_events(self, events: Sequence[GolfEvent]) -> UpsertResult:
        return await self._upsert_rows(GolfEventORM, (e.to_row() for e in events), ("id",))

    async def upsert_golf_standings(self, items: Sequence[GolfStandings]) -> UpsertResult:
        return await self._upsert_rows(GolfStandingsORM, (s.to_row() for s in items), ("id",))

    async def upsert_games(self, games: Sequence[Game]) -> UpsertResult:
        return await self._upsert_rows(GameORM, (g.to_row() for g in games), ("provider_game_id", "sport_type"))

    # ── Row mutations for the overlay and enrichment passes ─────────────
    async def apply_live_update(self, fixture_id: int, live: LiveUpdate) -> bool:
        """Overwrite status, minute and score of one cached fixture."""
        values: dict[str, Any] = {
            "status": live.status.value,
            "minute": live.minute,
            "updated_at": self._clock(),
        }
        if live.status.has_started:
            values["home_score"] = live.home_score
            values["away_score"] = live.away_score
        async with self._db.write_session() as session:
            res = await session.execute(
                update(FixtureORM).where(FixtureORM.id == fixture_id).values(**values)
            )
        return res.rowcount > 0

    async def mark_finished(self, fixture_ids: Sequence[int]) -> int:
        """Force live rows to FT. Rows no longer live are left alone."""
        if not fixture_ids:
            return 0
        async with self._db.write_session() as session:
            res = await session.execute(
                update(FixtureORM)
                .where(FixtureORM.id.in_(list(fixture_ids)))
                .where(FixtureORM.status.in_(LIVE_STATUS_VALUES))
                .values(status=FixtureStatus.FINISHED.value, updated_at=self._clock())
            )
        return res.rowcount or 0

    async def set_match_details(self, fixture_id: int, envelope: dict[str, Any]) -> bool:
        async with self._db.write_session() as session:
            res = await session.execute(
                update(FixtureORM)
                .where(FixtureORM.id == fixture_id)
                .values(match_details=envelope, updated_at=self._clock())
            )
        return res.rowcount > 0
