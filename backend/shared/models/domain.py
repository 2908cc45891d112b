"""
Pydantic v2 domain models shared by the sync passes and the API.
These are the canonical internal representations, NOT ORM models.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.enums import (
    FixtureStatus,
    GameStatus,
    GolfDataType,
    GolfEventStatus,
    Sport,
    SyncRunStatus,
)

PAYLOAD_SCHEMA_VERSION = 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PayloadEnvelope(DomainModel):
    """Opaque provider payload tagged with the shape version it was stored under."""
    schema_version: int = PAYLOAD_SCHEMA_VERSION
    payload: dict[str, Any] = Field(default_factory=dict)


# ── Fixtures ────────────────────────────────────────────────────────────
class TeamSide(DomainModel):
    team_id: int
    name: str
    short_name: str
    logo: Optional[str] = None
    score: Optional[int] = None


class Fixture(DomainModel):
    """One cached soccer fixture, keyed by (provider_id, sport_type)."""
    provider_id: int
    sport_type: str = Sport.SOCCER.value
    match_date: date
    kickoff: datetime
    minute: Optional[int] = None
    status: FixtureStatus
    stage: Optional[str] = None
    matchday: Optional[int] = None
    league_code: str
    league_name: str
    league_logo: Optional[str] = None
    home: TeamSide
    away: TeamSide
    venue: Optional[str] = None

    @model_validator(mode="after")
    def _clear_unstarted_scores(self) -> "Fixture":
        if not self.status.has_started:
            self.home.score = None
            self.away.score = None
            self.minute = None
        return self

    def to_row(self) -> dict[str, Any]:
        """Flatten into fixtures_cache columns (match_details excluded)."""
        return {
            "provider_id": self.provider_id,
            "sport_type": self.sport_type,
            "match_date": self.match_date,
            "kickoff": self.kickoff.astimezone(timezone.utc),
            "minute": self.minute,
            "status": self.status.value,
            "stage": self.stage,
            "matchday": self.matchday,
            "league_code": self.league_code,
            "league_name": self.league_name,
            "league_logo": self.league_logo,
            "home_team_id": self.home.team_id,
            "home_team_name": self.home.name,
            "home_team_short": self.home.short_name,
            "home_team_logo": self.home.logo,
            "home_score": self.home.score,
            "away_team_id": self.away.team_id,
            "away_team_name": self.away.name,
            "away_team_short": self.away.short_name,
            "away_team_logo": self.away.logo,
            "away_score": self.away.score,
            "venue": self.venue,
        }


class Team(DomainModel):
    provider_id: int
    sport_type: str = Sport.SOCCER.value
    name: str
    short_name: str
    abbreviation: Optional[str] = None
    logo: Optional[str] = None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()


class LiveUpdate(DomainModel):
    """One entry of the live snapshot, identified only by league and team names."""
    provider_fixture_id: int
    league_code: str
    home_name: str
    away_name: str
    status: FixtureStatus
    minute: Optional[int] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None


# ── Standings ───────────────────────────────────────────────────────────
class StandingsSnapshot(DomainModel):
    league_code: str
    league_name: str
    season: int
    sport_type: str = Sport.SOCCER.value
    table: list[dict[str, Any]] = Field(default_factory=list)

    def to_row(self) -> dict[str, Any]:
        return {
            "league_code": self.league_code,
            "league_name": self.league_name,
            "season": self.season,
            "sport_type": self.sport_type,
            "schema_version": PAYLOAD_SCHEMA_VERSION,
            "standings": {"table": self.table},
        }


# ── Golf ────────────────────────────────────────────────────────────────
class GolfEvent(DomainModel):
    tour: str
    provider_event_id: str
    name: str
    event_date: Optional[date] = None
    status: GolfEventStatus = GolfEventStatus.SCHEDULED
    envelope: PayloadEnvelope

    @property
    def id(self) -> str:
        return f"golf_{self.tour}_{self.provider_event_id}"

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tour_slug": self.tour,
            "provider_event_id": self.provider_event_id,
            "event_name": self.name,
            "event_date": self.event_date,
            "status": self.status.value,
            "schema_version": self.envelope.schema_version,
            "event_data": self.envelope.payload,
        }


class GolfStandings(DomainModel):
    tour: str
    data_type: GolfDataType
    envelope: PayloadEnvelope

    @property
    def id(self) -> str:
        return f"{self.tour}_{self.data_type.value}"

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tour_slug": self.tour,
            "data_type": self.data_type.value,
            "schema_version": self.envelope.schema_version,
            "data": self.envelope.payload,
        }


# ── ESPN games ──────────────────────────────────────────────────────────
class GameSide(DomainModel):
    team_id: str
    name: str
    abbreviation: str
    logo: Optional[str] = None
    color: Optional[str] = None
    record: Optional[str] = None
    rank: Optional[int] = None
    score: Optional[int] = None


class Game(DomainModel):
    """One cached ESPN scoreboard game, keyed by (provider_game_id, sport_type)."""
    provider_game_id: str
    sport_type: str
    game_date: date
    kickoff: datetime
    status: GameStatus
    status_detail: Optional[str] = None
    period: Optional[int] = None
    clock: Optional[str] = None
    home: GameSide
    away: GameSide
    venue: Optional[str] = None
    broadcast: Optional[str] = None
    conference_game: bool = False
    neutral_site: bool = False
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _clear_unstarted_scores(self) -> "Game":
        # ESPN reports "0" for games that have not started.
        if not self.status.has_started:
            self.home.score = None
            self.away.score = None
        return self

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "provider_game_id": self.provider_game_id,
            "sport_type": self.sport_type,
            "game_date": self.game_date,
            "kickoff": self.kickoff.astimezone(timezone.utc),
            "status": self.status.value,
            "status_detail": self.status_detail,
            "period": self.period,
            "clock": self.clock,
            "venue": self.venue,
            "broadcast": self.broadcast,
            "conference_game": self.conference_game,
            "neutral_site": self.neutral_site,
            "extra_data": self.extra or None,
        }
        for prefix, side in (("home", self.home), ("away", self.away)):
            row.update({
                f"{prefix}_team_id": side.team_id,
                f"{prefix}_team_name": side.name,
                f"{prefix}_team_abbrev": side.abbreviation,
                f"{prefix}_team_logo": side.logo,
                f"{prefix}_team_color": side.color,
                f"{prefix}_team_record": side.record,
                f"{prefix}_team_rank": side.rank,
                f"{prefix}_score": side.score,
            })
        return row


# ── Sync bookkeeping ────────────────────────────────────────────────────
class UpsertResult(DomainModel):
    written: int = 0
    errors: list[str] = Field(default_factory=list)
    failed_batches: int = 0
    total_batches: int = 0

    def merge(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            written=self.written + other.written,
            errors=[*self.errors, *other.errors],
            failed_batches=self.failed_batches + other.failed_batches,
            total_batches=self.total_batches + other.total_batches,
        )


class SyncSummary(DomainModel):
    """Returned by every sync invocation and mirrored into sync_log."""
    sync_type: str
    sport_type: str
    status: SyncRunStatus = SyncRunStatus.SUCCESS
    synced: int = 0
    units_total: int = 0
    units_failed: int = 0
    duration_ms: int = 0
    errors: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


class SyncRun(DomainModel):
    id: Optional[int] = None
    sync_type: str
    sport_type: str
    records_synced: int
    status: SyncRunStatus
    error_message: Optional[str] = None
    completed_at: datetime
