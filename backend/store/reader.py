"""
Read side of the cache.

Queries return rows in kickoff order together with a freshness flag: a
result is "fresh" when its newest row was written within the freshness
window. Stale results are still served; callers decide whether to refresh.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import select

from shared.models.domain import utcnow
from shared.models.enums import LIVE_STATUS_VALUES, FixtureStatus
from shared.models.orm import (
    FixtureORM,
    GameORM,
    GolfEventORM,
    GolfStandingsORM,
    StandingsORM,
)
from shared.utils.database import DatabaseManager

from overlay.matcher import FixtureCandidate
from overlay.orphans import as_utc


@dataclass
class CachedRows:
    rows: list[Any] = field(default_factory=list)
    last_updated: Optional[datetime] = None
    is_fresh: bool = False


def fixture_to_dict(row: FixtureORM) -> dict[str, Any]:
    return {
        "id": row.id,
        "provider_id": row.provider_id,
        "sport_type": row.sport_type,
        "match_date": row.match_date.isoformat(),
        "kickoff": as_utc(row.kickoff).isoformat(),
        "minute": row.minute,
        "status": row.status,
        "stage": row.stage,
        "matchday": row.matchday,
        "league": {"code": row.league_code, "name": row.league_name, "logo": row.league_logo},
        "home": {
            "id": row.home_team_id,
            "name": row.home_team_name,
            "short_name": row.home_team_short,
            "logo": row.home_team_logo,
            "score": row.home_score,
        },
        "away": {
            "id": row.away_team_id,
            "name": row.away_team_name,
            "short_name": row.away_team_short,
            "logo": row.away_team_logo,
            "score": row.away_score,
        },
        "venue": row.venue,
        "match_details": row.match_details,
        "updated_at": as_utc(row.updated_at).isoformat() if row.updated_at else None,
    }


def game_to_dict(row: GameORM) -> dict[str, Any]:
    sides = {}
    for prefix in ("home", "away"):
        sides[prefix] = {
            "id": getattr(row, f"{prefix}_team_id"),
            "name": getattr(row, f"{prefix}_team_name"),
            "abbreviation": getattr(row, f"{prefix}_team_abbrev"),
            "logo": getattr(row, f"{prefix}_team_logo"),
            "color": getattr(row, f"{prefix}_team_color"),
            "record": getattr(row, f"{prefix}_team_record"),
            "rank": getattr(row, f"{prefix}_team_rank"),
            "score": getattr(row, f"{prefix}_score"),
        }
    return {
        "id": row.provider_game_id,
        "sport_type": row.sport_type,
        "game_date": row.game_date.isoformat(),
        "kickoff": as_utc(row.kickoff).isoformat(),
        "status": row.status,
        "status_detail": row.status_detail,
        "period": row.period,
        "clock": row.clock,
        **sides,
        "venue": row.venue,
        "broadcast": row.broadcast,
        "conference_game": row.conference_game,
        "neutral_site": row.neutral_site,
        "extra": row.extra_data or {},
        "updated_at": as_utc(row.updated_at).isoformat() if row.updated_at else None,
    }


def _candidate(row: FixtureORM) -> FixtureCandidate:
    return FixtureCandidate(
        id=row.id,
        league_code=row.league_code,
        match_date=row.match_date,
        kickoff=as_utc(row.kickoff),
        status=FixtureStatus(row.status),
        home_name=row.home_team_name,
        away_name=row.away_team_name,
    )


class CacheReader:

    def __init__(
        self,
        db: DatabaseManager,
        freshness_window_s: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._window = timedelta(seconds=freshness_window_s)
        self._clock = clock

    def _wrap(self, rows: Sequence[Any]) -> CachedRows:
        stamps = [as_utc(r.updated_at) for r in rows if getattr(r, "updated_at", None)]
        last = max(stamps) if stamps else None
        fresh = last is not None and self._clock() - last <= self._window
        return CachedRows(rows=list(rows), last_updated=last, is_fresh=fresh)

    # ── Fixtures ────────────────────────────────────────────────────────
    async def fixtures_for_date(self, sport_type: str, match_date: date) -> CachedRows:
        async with self._db.read_session() as session:
            result = await session.execute(
                select(FixtureORM)
                .where(FixtureORM.sport_type == sport_type, FixtureORM.match_date == match_date)
                .order_by(FixtureORM.kickoff, FixtureORM.id)
            )
            return self._wrap(result.scalars().all())

    async def fixtures_for_team(self, sport_type: str, team_id: int, limit: int = 50) -> CachedRows:
        """Most recent fixtures involving a team, returned in kickoff order."""
        async with self._db.read_session() as session:
            result = await session.execute(
                select(FixtureORM)
                .where(
                    FixtureORM.sport_type == sport_type,
                    (FixtureORM.home_team_id == team_id) | (FixtureORM.away_team_id == team_id),
                )
                .order_by(FixtureORM.kickoff.desc())
                .limit(limit)
            )
            rows = list(result.scalars().all())
        rows.reverse()
        return self._wrap(rows)

    async def candidates(self, sport_type: str, match_date: date, league_codes: Sequence[str]) -> list[FixtureCandidate]:
        """Rows a live snapshot may refer to: same reference day, given leagues."""
        if not league_codes:
            return []
        async with self._db.read_session() as session:
            result = await session.execute(
                select(FixtureORM).where(
                    FixtureORM.sport_type == sport_type,
                    FixtureORM.match_date == match_date,
                    FixtureORM.league_code.in_(list(league_codes)),
                )
            )
            return [_candidate(r) for r in result.scalars().all()]

    async def live_rows(self, sport_type: str, match_date: date) -> list[FixtureCandidate]:
        async with self._db.read_session() as session:
            result = await session.execute(
                select(FixtureORM).where(
                    FixtureORM.sport_type == sport_type,
                    FixtureORM.match_date == match_date,
                    FixtureORM.status.in_(LIVE_STATUS_VALUES),
                )
            )
            return [_candidate(r) for r in result.scalars().all()]

    async def fixtures_needing_details(self, sport_type: str, limit: int) -> list[FixtureORM]:
        """Finished rows without match_details, newest first."""
        async with self._db.read_session() as session:
            result = await session.execute(
                select(FixtureORM)
                .where(
                    FixtureORM.sport_type == sport_type,
                    FixtureORM.status == FixtureStatus.FINISHED.value,
                    FixtureORM.match_details.is_(None),
                )
                .order_by(FixtureORM.kickoff.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ── Standings ───────────────────────────────────────────────────────
    async def standings(self, sport_type: str, league_code: str) -> Optional[StandingsORM]:
        """Latest season's table for a league."""
        async with self._db.read_session() as session:
            result = await session.execute(
                select(StandingsORM)
                .where(StandingsORM.sport_type == sport_type, StandingsORM.league_code == league_code.upper())
                .order_by(StandingsORM.season.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    # ── Golf ────────────────────────────────────────────────────────────
    async def golf_events(self, tour: Optional[str] = None) -> CachedRows:
        stmt = select(GolfEventORM).order_by(GolfEventORM.event_date, GolfEventORM.id)
        if tour:
            stmt = stmt.where(GolfEventORM.tour_slug == tour.lower())
        async with self._db.read_session() as session:
            result = await session.execute(stmt)
            return self._wrap(result.scalars().all())

    async def golf_event(self, event_id: str) -> Optional[GolfEventORM]:
        async with self._db.read_session() as session:
            return await session.get(GolfEventORM, event_id)

    async def golf_standings(self, tour: str, data_type: str) -> Optional[GolfStandingsORM]:
        async with self._db.read_session() as session:
            return await session.get(GolfStandingsORM, f"{tour.lower()}_{data_type.lower()}")

    # ── ESPN games ──────────────────────────────────────────────────────
    async def games_for_date(self, sport_type: str, game_date: date) -> CachedRows:
        async with self._db.read_session() as session:
            result = await session.execute(
                select(GameORM)
                .where(GameORM.sport_type == sport_type, GameORM.game_date == game_date)
                .order_by(GameORM.kickoff, GameORM.id)
            )
            return self._wrap(result.scalars().all())
