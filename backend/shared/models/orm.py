"""
SQLAlchemy 2.0 ORM models for the sports data cache.
JSON columns use JSONB on PostgreSQL and plain JSON elsewhere.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class FixtureORM(Base):
    __tablename__ = "fixtures_cache"
    __table_args__ = (
        UniqueConstraint("provider_id", "sport_type", name="uq_fixtures_provider"),
        Index("idx_fixtures_date_sport", "match_date", "sport_type"),
        Index("idx_fixtures_league_date", "league_code", "match_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sport_type: Mapped[str] = mapped_column(String(20), nullable=False)
    match_date: Mapped[date] = mapped_column(Date, nullable=False)
    kickoff: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    minute: Mapped[Optional[int]] = mapped_column(SmallInteger)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    stage: Mapped[Optional[str]] = mapped_column(String(50))
    matchday: Mapped[Optional[int]] = mapped_column(SmallInteger)
    league_code: Mapped[str] = mapped_column(String(10), nullable=False)
    league_name: Mapped[str] = mapped_column(String(100), nullable=False)
    league_logo: Mapped[Optional[str]] = mapped_column(Text)
    home_team_id: Mapped[int] = mapped_column(Integer, nullable=False)
    home_team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    home_team_short: Mapped[str] = mapped_column(String(50), nullable=False)
    home_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    home_score: Mapped[Optional[int]] = mapped_column(SmallInteger)
    away_team_id: Mapped[int] = mapped_column(Integer, nullable=False)
    away_team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    away_team_short: Mapped[str] = mapped_column(String(50), nullable=False)
    away_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    away_score: Mapped[Optional[int]] = mapped_column(SmallInteger)
    venue: Mapped[Optional[str]] = mapped_column(String(200))
    match_details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class TeamORM(Base):
    __tablename__ = "teams_cache"
    __table_args__ = (
        UniqueConstraint("provider_id", "sport_type", name="uq_teams_provider"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_id: Mapped[int] = mapped_column(Integer, nullable=False)
    sport_type: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    short_name: Mapped[str] = mapped_column(String(50), nullable=False)
    abbreviation: Mapped[Optional[str]] = mapped_column(String(10))
    logo: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SyncRunORM(Base):
    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sync_type: Mapped[str] = mapped_column(String(30), nullable=False)
    sport_type: Mapped[str] = mapped_column(String(20), nullable=False)
    records_synced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class StandingsORM(Base):
    __tablename__ = "standings_cache"
    __table_args__ = (
        UniqueConstraint("league_code", "season", "sport_type", name="uq_standings_league_season"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    league_code: Mapped[str] = mapped_column(String(10), nullable=False)
    league_name: Mapped[str] = mapped_column(String(100), nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    sport_type: Mapped[str] = mapped_column(String(20), nullable=False)
    schema_version: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    standings: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GolfEventORM(Base):
    __tablename__ = "golf_events_cache"
    __table_args__ = (
        Index("idx_golf_events_tour_date", "tour_slug", "event_date"),
    )

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    tour_slug: Mapped[str] = mapped_column(String(10), nullable=False)
    provider_event_id: Mapped[str] = mapped_column(String(40), nullable=False)
    event_name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    schema_version: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    event_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GolfStandingsORM(Base):
    __tablename__ = "golf_standings_cache"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    tour_slug: Mapped[str] = mapped_column(String(10), nullable=False)
    data_type: Mapped[str] = mapped_column(String(20), nullable=False)
    schema_version: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GameORM(Base):
    __tablename__ = "espn_games_cache"
    __table_args__ = (
        UniqueConstraint("provider_game_id", "sport_type", name="uq_espn_games_provider"),
        Index("idx_espn_games_date_sport", "game_date", "sport_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider_game_id: Mapped[str] = mapped_column(String(40), nullable=False)
    sport_type: Mapped[str] = mapped_column(String(30), nullable=False)
    game_date: Mapped[date] = mapped_column(Date, nullable=False)
    kickoff: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    status_detail: Mapped[Optional[str]] = mapped_column(String(100))
    period: Mapped[Optional[int]] = mapped_column(SmallInteger)
    clock: Mapped[Optional[str]] = mapped_column(String(20))
    home_team_id: Mapped[str] = mapped_column(String(20), nullable=False)
    home_team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    home_team_abbrev: Mapped[str] = mapped_column(String(20), nullable=False)
    home_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    home_team_color: Mapped[Optional[str]] = mapped_column(String(10))
    home_team_record: Mapped[Optional[str]] = mapped_column(String(30))
    home_team_rank: Mapped[Optional[int]] = mapped_column(SmallInteger)
    home_score: Mapped[Optional[int]] = mapped_column(SmallInteger)
    away_team_id: Mapped[str] = mapped_column(String(20), nullable=False)
    away_team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    away_team_abbrev: Mapped[str] = mapped_column(String(20), nullable=False)
    away_team_logo: Mapped[Optional[str]] = mapped_column(Text)
    away_team_color: Mapped[Optional[str]] = mapped_column(String(10))
    away_team_record: Mapped[Optional[str]] = mapped_column(String(30))
    away_team_rank: Mapped[Optional[int]] = mapped_column(SmallInteger)
    away_score: Mapped[Optional[int]] = mapped_column(SmallInteger)
    venue: Mapped[Optional[str]] = mapped_column(String(200))
    broadcast: Mapped[Optional[str]] = mapped_column(String(100))
    conference_game: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    neutral_site: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    extra_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
