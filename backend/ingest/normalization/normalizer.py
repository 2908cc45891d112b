"""
Normalization: raw provider records -> canonical domain models.

All functions here are pure. Anything that cannot produce a valid record
raises MalformedRecord; callers drop the record and count the error.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

import pytz

from shared.errors import MalformedRecord
from shared.models.domain import (
    Fixture,
    Game,
    GameSide,
    GolfEvent,
    LiveUpdate,
    PayloadEnvelope,
    StandingsSnapshot,
    Team,
    TeamSide,
)
from shared.models.enums import ProviderName, Sport
from shared.models.leagues import League, league_for_code

from ingest.normalization.status_maps import (
    map_api_football_status,
    map_espn_game_status,
    map_espn_golf_status,
    map_football_data_status,
)

FD = ProviderName.FOOTBALL_DATA.value
AF = ProviderName.API_FOOTBALL.value
ESPN = ProviderName.ESPN_GOLF.value
ESPN_SB = ProviderName.ESPN_SCOREBOARD.value


# ── Helpers ─────────────────────────────────────────────────────────────

def parse_timestamp(value: Any, provider: str, record_id: object = None) -> datetime:
    """Parse an ISO-8601 instant into an aware UTC datetime."""
    if not value or not isinstance(value, str):
        raise MalformedRecord(provider, "missing kickoff timestamp", record_id)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise MalformedRecord(provider, f"bad timestamp {value!r}", record_id) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def reference_date(kickoff: datetime, tz_name: str) -> date:
    """Calendar day of the kickoff instant in the reference timezone."""
    if kickoff.tzinfo is None:
        kickoff = kickoff.replace(tzinfo=timezone.utc)
    return kickoff.astimezone(pytz.timezone(tz_name)).date()


def derive_short_name(name: str, provided: Optional[str] = None) -> str:
    if provided and provided.strip():
        return provided.strip()
    return name.strip()[:3].upper()


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _team_side(raw: Any, score: Any, side: str, record_id: object) -> TeamSide:
    if not isinstance(raw, dict):
        raise MalformedRecord(FD, f"missing {side} team", record_id)
    team_id = _int_or_none(raw.get("id"))
    name = (raw.get("name") or "").strip()
    if team_id is None or not name:
        raise MalformedRecord(FD, f"{side} team lacks id or name", record_id)
    return TeamSide(
        team_id=team_id,
        name=name,
        short_name=derive_short_name(name, raw.get("shortName")),
        logo=raw.get("crest"),
        score=_int_or_none(score),
    )


# ── football-data.org (primary) ─────────────────────────────────────────

def normalize_football_data_match(
    raw: dict[str, Any],
    reference_tz: str,
    league_code: Optional[str] = None,
) -> Fixture:
    """
    Build a Fixture from one football-data v4 match object.

    ``league_code`` is used when the record comes from a
    competition-scoped endpoint that omits the competition block.
    """
    record_id = raw.get("id") if isinstance(raw, dict) else None
    provider_id = _int_or_none(record_id)
    if provider_id is None:
        raise MalformedRecord(FD, "missing match id")

    kickoff = parse_timestamp(raw.get("utcDate"), FD, provider_id)

    competition = raw.get("competition") or {}
    code = (competition.get("code") or league_code or "").upper()
    if not code:
        raise MalformedRecord(FD, "missing competition code", provider_id)
    league: Optional[League] = league_for_code(code)
    league_name = competition.get("name") or (league.name if league else code)

    score = raw.get("score") or {}
    full_time = score.get("fullTime") or {}
    minute = _int_or_none(raw.get("minute"))
    status = map_football_data_status(raw.get("status"), minute)
    if status is None:
        # Skipped, not defaulted: the cached row keeps its last known state.
        raise MalformedRecord(FD, f"unknown status {raw.get('status')!r}", provider_id)

    return Fixture(
        provider_id=provider_id,
        sport_type=Sport.SOCCER.value,
        match_date=reference_date(kickoff, reference_tz),
        kickoff=kickoff,
        minute=minute,
        status=status,
        stage=raw.get("stage"),
        matchday=_int_or_none(raw.get("matchday")),
        league_code=code,
        league_name=league_name,
        league_logo=competition.get("emblem"),
        home=_team_side(raw.get("homeTeam"), full_time.get("home"), "home", provider_id),
        away=_team_side(raw.get("awayTeam"), full_time.get("away"), "away", provider_id),
        venue=raw.get("venue"),
    )


def teams_from_fixtures(fixtures: Iterable[Fixture], abbreviations: dict[int, str] | None = None) -> list[Team]:
    """Distinct teams referenced by a set of fixtures, first occurrence wins."""
    abbreviations = abbreviations or {}
    seen: dict[int, Team] = {}
    for fx in fixtures:
        for side in (fx.home, fx.away):
            if side.team_id in seen:
                continue
            seen[side.team_id] = Team(
                provider_id=side.team_id,
                sport_type=fx.sport_type,
                name=side.name,
                short_name=side.short_name,
                abbreviation=abbreviations.get(side.team_id),
                logo=side.logo,
            )
    return list(seen.values())


def team_abbreviations(raw_matches: Iterable[dict[str, Any]]) -> dict[int, str]:
    """football-data three-letter codes (tla) keyed by team id."""
    out: dict[int, str] = {}
    for raw in raw_matches:
        for key in ("homeTeam", "awayTeam"):
            team = raw.get(key) or {}
            team_id = _int_or_none(team.get("id"))
            if team_id is not None and team.get("tla"):
                out[team_id] = team["tla"]
    return out


def normalize_standings(raw: dict[str, Any], league: League) -> StandingsSnapshot:
    """Extract the TOTAL table from a football-data standings response."""
    season_start = ((raw.get("season") or {}).get("startDate") or "")[:4]
    if not season_start.isdigit():
        raise MalformedRecord(FD, "standings without season start", league.code)
    tables = raw.get("standings") or []
    total = next((t for t in tables if t.get("type") == "TOTAL"), tables[0] if tables else None)
    if total is None:
        raise MalformedRecord(FD, "standings without tables", league.code)

    rows: list[dict[str, Any]] = []
    for entry in total.get("table") or []:
        team = entry.get("team") or {}
        rows.append({
            "position": entry.get("position"),
            "team_id": team.get("id"),
            "team_name": team.get("name"),
            "team_short": derive_short_name(team.get("name") or "", team.get("shortName")),
            "team_logo": team.get("crest"),
            "played": entry.get("playedGames"),
            "won": entry.get("won"),
            "draw": entry.get("draw"),
            "lost": entry.get("lost"),
            "points": entry.get("points"),
            "goals_for": entry.get("goalsFor"),
            "goals_against": entry.get("goalsAgainst"),
            "goal_difference": entry.get("goalDifference"),
            "form": entry.get("form"),
        })
    return StandingsSnapshot(
        league_code=league.code,
        league_name=(raw.get("competition") or {}).get("name") or league.name,
        season=int(season_start),
        table=rows,
    )


# ── API-Football (live snapshot) ────────────────────────────────────────

def normalize_live_update(raw: dict[str, Any], league_code: str) -> LiveUpdate:
    fixture = raw.get("fixture") or {}
    fixture_id = _int_or_none(fixture.get("id"))
    if fixture_id is None:
        raise MalformedRecord(AF, "missing fixture id")
    teams = raw.get("teams") or {}
    home = ((teams.get("home") or {}).get("name") or "").strip()
    away = ((teams.get("away") or {}).get("name") or "").strip()
    if not home or not away:
        raise MalformedRecord(AF, "missing team names", fixture_id)
    status_block = fixture.get("status") or {}
    goals = raw.get("goals") or {}
    return LiveUpdate(
        provider_fixture_id=fixture_id,
        league_code=league_code,
        home_name=home,
        away_name=away,
        status=map_api_football_status(status_block.get("short")),
        minute=_int_or_none(status_block.get("elapsed")),
        home_score=_int_or_none(goals.get("home")),
        away_score=_int_or_none(goals.get("away")),
    )


# ── ESPN golf ───────────────────────────────────────────────────────────

def _golf_status_name(raw: dict[str, Any]) -> Optional[str]:
    status = ((raw.get("status") or {}).get("type") or {}).get("name")
    if status:
        return status
    competitions = raw.get("competitions") or (raw.get("header") or {}).get("competitions") or []
    if competitions:
        return ((competitions[0].get("status") or {}).get("type") or {}).get("name")
    return None


def normalize_golf_event(raw: dict[str, Any], tour: str, event_id: Optional[str] = None) -> GolfEvent:
    """
    Wrap one ESPN scoreboard event or summary response.

    The payload is stored wholesale in a versioned envelope; only the
    identity, name, date and status are lifted into columns. ``event_id``
    covers summary responses that omit the id they were requested for.
    """
    info = (raw.get("header") or {}).get("event") or raw.get("event") or raw
    event_id = str(info.get("id") or raw.get("id") or event_id or "").strip()
    if not event_id:
        raise MalformedRecord(ESPN, "missing event id")
    name = (info.get("name") or (raw.get("header") or {}).get("name") or "").strip()
    if not name:
        raise MalformedRecord(ESPN, "missing event name", event_id)

    event_date: Optional[date] = None
    raw_date = info.get("date") or raw.get("date")
    if isinstance(raw_date, str) and len(raw_date) >= 10:
        try:
            event_date = date.fromisoformat(raw_date[:10])
        except ValueError as exc:
            raise MalformedRecord(ESPN, f"bad event date {raw_date!r}", event_id) from exc

    return GolfEvent(
        tour=tour,
        provider_event_id=event_id,
        name=name,
        event_date=event_date,
        status=map_espn_golf_status(_golf_status_name(raw)),
        envelope=PayloadEnvelope(payload=raw),
    )


# ── ESPN scoreboard (multi-sport games) ─────────────────────────────────

def _game_side(raw: Any, side: str, record_id: object) -> GameSide:
    team = raw.get("team") if isinstance(raw, dict) else None
    if not isinstance(team, dict):
        raise MalformedRecord(ESPN_SB, f"missing {side} competitor", record_id)
    team_id = str(team.get("id") or "").strip()
    name = (team.get("name") or team.get("displayName") or team.get("shortDisplayName") or "").strip()
    if not team_id or not name:
        raise MalformedRecord(ESPN_SB, f"{side} team lacks id or name", record_id)
    logos = team.get("logos") or []
    rank = _int_or_none((raw.get("curatedRank") or {}).get("current"))
    records = raw.get("records") or []
    return GameSide(
        team_id=team_id,
        name=name,
        abbreviation=(team.get("abbreviation") or team.get("shortDisplayName") or name[:3].upper()),
        logo=team.get("logo") or (logos[0].get("href") if logos else None),
        color=team.get("color"),
        record=records[0].get("summary") if records else None,
        # ESPN ranks unranked teams 99
        rank=rank if rank is not None and 0 < rank <= 25 else None,
        score=_int_or_none(raw.get("score")),
    )


def _game_extra(competition: dict[str, Any], home: dict[str, Any], away: dict[str, Any], sport_type: str) -> dict[str, Any]:
    extra: dict[str, Any] = {}
    situation = competition.get("situation")
    if sport_type == "baseball" and isinstance(situation, dict):
        extra["situation"] = {
            k: situation.get(k) for k in ("balls", "strikes", "outs", "onFirst", "onSecond", "onThird")
        }
    if home.get("linescores") or away.get("linescores"):
        extra["line_score"] = {
            "home": [ls.get("value") for ls in home.get("linescores") or []],
            "away": [ls.get("value") for ls in away.get("linescores") or []],
        }
    if home.get("hits") is not None:
        extra["home_hits"] = _int_or_none(home.get("hits")) or 0
        extra["home_errors"] = _int_or_none(home.get("errors")) or 0
        extra["away_hits"] = _int_or_none(away.get("hits")) or 0
        extra["away_errors"] = _int_or_none(away.get("errors")) or 0
    return extra


def normalize_espn_game(raw: dict[str, Any], sport_type: str, reference_tz: str) -> Game:
    """
    Build a Game from one ESPN site-API scoreboard event.

    The game date is the kickoff's calendar day in the reference timezone,
    so late West Coast starts stay on the day they are billed for.
    """
    game_id = str(raw.get("id") or "").strip() if isinstance(raw, dict) else ""
    if not game_id:
        raise MalformedRecord(ESPN_SB, "missing event id")
    kickoff = parse_timestamp(raw.get("date"), ESPN_SB, game_id)

    competitions = raw.get("competitions") or []
    if not competitions:
        raise MalformedRecord(ESPN_SB, "event without competitions", game_id)
    competition = competitions[0]
    by_side = {c.get("homeAway"): c for c in competition.get("competitors") or [] if isinstance(c, dict)}
    home_raw, away_raw = by_side.get("home"), by_side.get("away")
    if home_raw is None or away_raw is None:
        raise MalformedRecord(ESPN_SB, "event lacks home or away competitor", game_id)

    status_block = raw.get("status") or competition.get("status") or {}
    status_type = status_block.get("type") or {}
    status = map_espn_game_status(status_type.get("name"), status_type.get("state"))
    if status is None:
        raise MalformedRecord(ESPN_SB, f"unknown status {status_type.get('name')!r}", game_id)

    broadcasts = competition.get("broadcasts") or []
    broadcast_names = (broadcasts[0].get("names") or []) if broadcasts else []

    return Game(
        provider_game_id=game_id,
        sport_type=sport_type,
        game_date=reference_date(kickoff, reference_tz),
        kickoff=kickoff,
        status=status,
        status_detail=status_type.get("shortDetail") or status_type.get("detail"),
        period=_int_or_none(status_block.get("period")),
        clock=status_block.get("displayClock"),
        home=_game_side(home_raw, "home", game_id),
        away=_game_side(away_raw, "away", game_id),
        venue=(competition.get("venue") or {}).get("fullName"),
        broadcast=broadcast_names[0] if broadcast_names else None,
        conference_game=bool(competition.get("conferenceCompetition")),
        neutral_site=bool(competition.get("neutralSite")),
        extra=_game_extra(competition, home_raw, away_raw, sport_type),
    )
