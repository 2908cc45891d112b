"""
Read endpoints over the cache.

GET /v1/fixtures                        Fixtures for a reference day.
GET /v1/teams/{team_id}/fixtures        Recent fixtures of one team.
GET /v1/standings/{league_code}         Latest league table.
GET /v1/golf/events                     Cached golf events, optionally by tour.
GET /v1/golf/events/{event_id}          One event's stored payload.
GET /v1/golf/standings/{tour}/{type}    Rankings, leaders or schedule.
GET /v1/games/{sport}                    ESPN games for a sport and reference day.

These never call upstream. Fixture lists carry ``is_fresh`` so callers can
decide whether to trigger a sync before showing cached data.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.models.enums import EspnSportKey, GolfDataType, GolfTour, Sport
from shared.models.espn_sports import espn_sport
from shared.models.orm import GolfEventORM

from api.dependencies import get_context, get_reader
from overlay.orphans import as_utc
from scheduler.context import SyncContext
from store.reader import CacheReader, CachedRows, fixture_to_dict, game_to_dict

router = APIRouter(prefix="/v1", tags=["cache"])


def _fixture_listing(cached: CachedRows) -> dict[str, Any]:
    return {
        "count": len(cached.rows),
        "is_fresh": cached.is_fresh,
        "last_updated": cached.last_updated.isoformat() if cached.last_updated else None,
        "fixtures": [fixture_to_dict(r) for r in cached.rows],
    }


def _golf_event_dict(row: GolfEventORM, with_payload: bool = False) -> dict[str, Any]:
    body: dict[str, Any] = {
        "id": row.id,
        "tour": row.tour_slug,
        "event_id": row.provider_event_id,
        "name": row.event_name,
        "event_date": row.event_date.isoformat() if row.event_date else None,
        "status": row.status,
        "updated_at": as_utc(row.updated_at).isoformat() if row.updated_at else None,
    }
    if with_payload:
        body["schema_version"] = row.schema_version
        body["data"] = row.event_data
    return body


# ── Fixtures ────────────────────────────────────────────────────────────

@router.get("/fixtures")
async def list_fixtures(
    date_: Optional[date] = Query(default=None, alias="date", description="Reference day, YYYY-MM-DD"),
    sport: Sport = Query(default=Sport.SOCCER),
    ctx: SyncContext = Depends(get_context),
) -> dict[str, Any]:
    match_date = date_ or ctx.today()
    cached = await ctx.reader.fixtures_for_date(sport.value, match_date)
    body = _fixture_listing(cached)
    body["date"] = match_date.isoformat()
    return body


@router.get("/teams/{team_id}/fixtures")
async def team_fixtures(
    team_id: int,
    sport: Sport = Query(default=Sport.SOCCER),
    limit: int = Query(default=50, ge=1, le=200),
    reader: CacheReader = Depends(get_reader),
) -> dict[str, Any]:
    cached = await reader.fixtures_for_team(sport.value, team_id, limit)
    body = _fixture_listing(cached)
    body["team_id"] = team_id
    return body


# ── Standings ───────────────────────────────────────────────────────────

@router.get("/standings/{league_code}")
async def league_standings(
    league_code: str,
    reader: CacheReader = Depends(get_reader),
) -> dict[str, Any]:
    row = await reader.standings(Sport.SOCCER.value, league_code)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No standings cached for {league_code.upper()}")
    return {
        "league_code": row.league_code,
        "league_name": row.league_name,
        "season": row.season,
        "schema_version": row.schema_version,
        "table": (row.standings or {}).get("table", []),
        "updated_at": as_utc(row.updated_at).isoformat() if row.updated_at else None,
    }


# ── Golf ────────────────────────────────────────────────────────────────

@router.get("/golf/events")
async def golf_events(
    tour: Optional[GolfTour] = Query(default=None),
    reader: CacheReader = Depends(get_reader),
) -> dict[str, Any]:
    cached = await reader.golf_events(tour.value if tour else None)
    return {
        "count": len(cached.rows),
        "is_fresh": cached.is_fresh,
        "last_updated": cached.last_updated.isoformat() if cached.last_updated else None,
        "events": [_golf_event_dict(r) for r in cached.rows],
    }


@router.get("/golf/events/{event_id}")
async def golf_event(
    event_id: str,
    reader: CacheReader = Depends(get_reader),
) -> dict[str, Any]:
    row = await reader.golf_event(event_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Golf event {event_id} not cached")
    return _golf_event_dict(row, with_payload=True)


@router.get("/golf/standings/{tour}/{data_type}")
async def golf_standings(
    tour: GolfTour,
    data_type: GolfDataType,
    reader: CacheReader = Depends(get_reader),
) -> dict[str, Any]:
    row = await reader.golf_standings(tour.value, data_type.value)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No {data_type.value} cached for {tour.value}")
    return {
        "id": row.id,
        "tour": row.tour_slug,
        "data_type": row.data_type,
        "schema_version": row.schema_version,
        "data": row.data,
        "updated_at": as_utc(row.updated_at).isoformat() if row.updated_at else None,
    }


# ── ESPN games ──────────────────────────────────────────────────────────

@router.get("/games/{sport}")
async def list_games(
    sport: EspnSportKey,
    date_: Optional[date] = Query(default=None, alias="date", description="Reference day, YYYY-MM-DD"),
    ctx: SyncContext = Depends(get_context),
) -> dict[str, Any]:
    game_date = date_ or ctx.today()
    entry = espn_sport(sport)
    cached = await ctx.reader.games_for_date(entry.sport_type, game_date)
    return {
        "sport": entry.key.value,
        "sport_type": entry.sport_type,
        "date": game_date.isoformat(),
        "count": len(cached.rows),
        "is_fresh": cached.is_fresh,
        "last_updated": cached.last_updated.isoformat() if cached.last_updated else None,
        "games": [game_to_dict(r) for r in cached.rows],
    }
