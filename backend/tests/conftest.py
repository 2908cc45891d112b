"""
Shared fixtures: in-memory SQLite store, test settings, fake provider
transports and record factories.
"""
from __future__ import annotations

import zlib
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from shared.config import Settings
from shared.models.domain import Fixture, TeamSide
from shared.models.enums import FixtureStatus, ProviderName
from shared.utils.database import DatabaseManager

from ingest.normalization.normalizer import reference_date
from ingest.providers.registry import build_providers
from scheduler.context import SyncContext
from store.reader import CacheReader
from store.upsert import CacheWriter

# 14:00 in New York, so the reference day is 2025-08-16.
NOW = datetime(2025, 8, 16, 18, 0, tzinfo=timezone.utc)


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def route_transport(
    routes: dict[str, Any],
    calls: Optional[list[httpx.Request]] = None,
) -> httpx.MockTransport:
    """
    Fake upstream keyed by URL path suffix; the longest matching suffix wins.
    Values are a JSON body, an httpx.Response, or a callable(request).
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        matches = [s for s in routes if request.url.path.endswith(s)]
        if not matches:
            return httpx.Response(404, json={"message": f"no route for {request.url.path}"})
        body = routes[max(matches, key=len)]
        if callable(body):
            return body(request)
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def transport() -> Callable[..., httpx.MockTransport]:
    return route_transport


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        cron_secret="test-secret",
        sync_leagues=["PL", "CL"],
        golf_tours=["pga", "liv"],
        football_data_min_interval_s=0.0,
        api_football_min_interval_s=0.0,
        espn_min_interval_s=0.0,
        metrics_enabled=False,
    )


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def db(settings: Settings):
    manager = DatabaseManager(settings)
    await manager.connect()
    await manager.create_schema()
    yield manager
    await manager.disconnect()


@pytest.fixture
def writer(db: DatabaseManager) -> CacheWriter:
    return CacheWriter(db, batch_size=100, clock=lambda: NOW)


@pytest.fixture
def reader(db: DatabaseManager) -> CacheReader:
    return CacheReader(db, freshness_window_s=60, clock=lambda: NOW)


class FlakyWriter(CacheWriter):
    """Rejects one chosen batch the way a locked database would."""

    def __init__(self, *args, fail_on: int, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fail_on = fail_on
        self.calls = 0

    async def _execute_batch(self, model, rows, conflict_cols, preserved) -> None:
        self.calls += 1
        if self.calls == self.fail_on:
            raise OperationalError("INSERT INTO fixtures_cache", {}, Exception("database is locked"))
        await super()._execute_batch(model, rows, conflict_cols, preserved)


@pytest.fixture
def flaky_writer(db: DatabaseManager) -> Callable[..., FlakyWriter]:
    def _build(batch_size: int, fail_on: int) -> FlakyWriter:
        return FlakyWriter(db, batch_size=batch_size, clock=lambda: NOW, fail_on=fail_on)

    return _build


@pytest_asyncio.fixture
async def make_ctx(settings: Settings, db: DatabaseManager, sleep: SleepRecorder):
    """Build a SyncContext whose providers talk to the given fake transports."""
    opened = []

    async def _make(
        transports: Optional[dict[ProviderName, httpx.AsyncBaseTransport]] = None,
        clock: Callable[[], datetime] = lambda: NOW,
        **overrides: Any,
    ) -> SyncContext:
        ctx_settings = settings.model_copy(update=overrides) if overrides else settings
        providers = build_providers(ctx_settings, transports=transports or {})
        await providers.start()
        opened.append(providers)
        return SyncContext.build(ctx_settings, db, providers, sleep=sleep, clock=clock)

    yield _make
    for providers in opened:
        await providers.close()


@pytest.fixture
def fd_match() -> Callable[..., dict[str, Any]]:
    """football-data v4 match object."""

    def _build(
        match_id: int,
        home: str,
        away: str,
        *,
        utc_date: str = "2025-08-16T14:00:00Z",
        status: str = "TIMED",
        score: tuple[Optional[int], Optional[int]] = (None, None),
        code: Optional[str] = "PL",
        home_id: Optional[int] = None,
        away_id: Optional[int] = None,
        minute: Optional[int] = None,
    ) -> dict[str, Any]:
        raw: dict[str, Any] = {
            "id": match_id,
            "utcDate": utc_date,
            "status": status,
            "stage": "REGULAR_SEASON",
            "matchday": 1,
            "homeTeam": {
                "id": home_id or zlib.crc32(home.encode()) % 100000,
                "name": home,
                "shortName": home.split()[0],
                "tla": home[:3].upper(),
                "crest": f"https://crests.example/{home_id or 0}.png",
            },
            "awayTeam": {
                "id": away_id or zlib.crc32(away.encode()) % 100000,
                "name": away,
                "shortName": away.split()[0],
                "tla": away[:3].upper(),
                "crest": None,
            },
            "score": {"fullTime": {"home": score[0], "away": score[1]}},
        }
        if code:
            raw["competition"] = {"code": code, "name": "Premier League" if code == "PL" else code}
        if minute is not None:
            raw["minute"] = minute
        return raw

    return _build


@pytest.fixture
def make_fixture(settings: Settings) -> Callable[..., Fixture]:
    """Normalized Fixture built directly, for store-level tests."""

    def _build(
        provider_id: int,
        home: str,
        away: str,
        *,
        status: FixtureStatus = FixtureStatus.NOT_STARTED,
        kickoff: datetime = datetime(2025, 8, 16, 14, 0, tzinfo=timezone.utc),
        league_code: str = "PL",
        score: tuple[Optional[int], Optional[int]] = (None, None),
        home_id: Optional[int] = None,
        away_id: Optional[int] = None,
    ) -> Fixture:
        return Fixture(
            provider_id=provider_id,
            match_date=reference_date(kickoff, settings.reference_timezone),
            kickoff=kickoff,
            status=status,
            league_code=league_code,
            league_name=league_code,
            home=TeamSide(team_id=home_id or provider_id * 10 + 1, name=home, short_name=home[:3].upper(), score=score[0]),
            away=TeamSide(team_id=away_id or provider_id * 10 + 2, name=away, short_name=away[:3].upper(), score=score[1]),
        )

    return _build


@pytest.fixture
def espn_event() -> Callable[..., dict[str, Any]]:
    """ESPN site-API scoreboard event for a team sport."""

    def _build(
        event_id: str,
        home: str,
        away: str,
        *,
        date: str = "2025-08-16T23:05Z",
        status: str = "STATUS_SCHEDULED",
        state: str = "pre",
        score: tuple[str, str] = ("0", "0"),
        period: int = 0,
        clock: str = "0:00",
    ) -> dict[str, Any]:
        def competitor(side: str, name: str, points: str) -> dict[str, Any]:
            return {
                "homeAway": side,
                "score": points,
                "team": {
                    "id": str(zlib.crc32(name.encode()) % 1000),
                    "displayName": name,
                    "abbreviation": name.split()[-1][:3].upper(),
                    "logos": [{"href": f"https://logos.example/{name.split()[-1].lower()}.png"}],
                    "color": "003087",
                },
                "records": [{"summary": "70-50"}],
            }

        return {
            "id": event_id,
            "date": date,
            "name": f"{away} at {home}",
            "status": {
                "period": period,
                "displayClock": clock,
                "type": {"name": status, "state": state, "shortDetail": "8/16 - 7:05 PM EDT"},
            },
            "competitions": [{
                "venue": {"fullName": f"{home} Park"},
                "broadcasts": [{"names": ["ESPN", "MLB.TV"]}],
                "competitors": [competitor("home", home, score[0]), competitor("away", away, score[1])],
            }],
        }

    return _build
