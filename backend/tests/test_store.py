"""
Tests for the cache store: keyed upserts, batch failure isolation, row
mutations used by the overlay, the read side and the run log.

Run: pytest backend/tests/test_store.py -v
"""
from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from shared.models.domain import (
    Game,
    GameSide,
    GolfEvent,
    GolfStandings,
    LiveUpdate,
    PayloadEnvelope,
    StandingsSnapshot,
    SyncSummary,
    Team,
)
from shared.models.enums import FixtureStatus, GameStatus, GolfDataType, GolfEventStatus, SyncRunStatus
from shared.models.orm import FixtureORM, SyncRunORM, TeamORM

from store.reader import CacheReader, fixture_to_dict, game_to_dict
from store.run_log import RunLogger, derive_status, settle_status
from store.upsert import CacheWriter

DAY = date(2025, 8, 16)
NOW = datetime(2025, 8, 16, 18, 0, tzinfo=timezone.utc)


async def _count(db, model) -> int:
    async with db.read_session() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _row(db, provider_id: int) -> FixtureORM:
    async with db.read_session() as session:
        result = await session.execute(select(FixtureORM).where(FixtureORM.provider_id == provider_id))
        return result.scalar_one()


# ── Upserts ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_upsert_is_idempotent(db, writer, make_fixture) -> None:
    fixtures = [make_fixture(1, "Arsenal", "Chelsea"), make_fixture(2, "Everton", "Fulham")]

    first = await writer.upsert_fixtures(fixtures)
    second = await writer.upsert_fixtures(fixtures)

    assert first.written == 2 and second.written == 2
    assert await _count(db, FixtureORM) == 2


@pytest.mark.asyncio
async def test_upsert_updates_in_place(db, writer, make_fixture) -> None:
    await writer.upsert_fixtures([make_fixture(1, "Arsenal", "Chelsea")])
    before = await _row(db, 1)

    await writer.upsert_fixtures(
        [make_fixture(1, "Arsenal", "Chelsea", status=FixtureStatus.FINISHED, score=(2, 1))]
    )
    after = await _row(db, 1)

    assert after.id == before.id
    assert after.status == "FT"
    assert (after.home_score, after.away_score) == (2, 1)


@pytest.mark.asyncio
async def test_duplicate_keys_in_one_call_keep_last(db, writer, make_fixture) -> None:
    result = await writer.upsert_fixtures(
        [
            make_fixture(1, "Arsenal", "Chelsea"),
            make_fixture(1, "Arsenal", "Chelsea", status=FixtureStatus.POSTPONED),
        ]
    )
    assert result.written == 1
    assert (await _row(db, 1)).status == "PST"


@pytest.mark.asyncio
async def test_reingest_preserves_match_details(db, writer, make_fixture) -> None:
    await writer.upsert_fixtures([make_fixture(1, "Arsenal", "Chelsea", status=FixtureStatus.FINISHED, score=(1, 0))])
    row = await _row(db, 1)
    envelope = {"schema_version": 1, "payload": {"match": {"id": 1}}}
    assert await writer.set_match_details(row.id, envelope)

    await writer.upsert_fixtures([make_fixture(1, "Arsenal", "Chelsea", status=FixtureStatus.FINISHED, score=(1, 1))])

    row = await _row(db, 1)
    assert row.match_details == envelope
    assert row.away_score == 1


@pytest.mark.asyncio
async def test_failed_batch_is_isolated(db, make_fixture, flaky_writer) -> None:
    writer = flaky_writer(batch_size=3, fail_on=3)
    fixtures = [make_fixture(i, f"Home {i}", f"Away {i}") for i in range(1, 31)]

    result = await writer.upsert_fixtures(fixtures)

    assert result.total_batches == 10
    assert result.failed_batches == 1
    assert result.written == 27
    assert "batch 3" in result.errors[0]
    assert await _count(db, FixtureORM) == 27


@pytest.mark.asyncio
async def test_teams_upsert(db, writer) -> None:
    teams = [Team(provider_id=57, name="Arsenal FC", short_name="Arsenal", abbreviation="ARS")]
    await writer.upsert_teams(teams)
    await writer.upsert_teams([Team(provider_id=57, name="Arsenal FC", short_name="Gunners")])

    async with db.read_session() as session:
        team = (await session.execute(select(TeamORM))).scalar_one()
    assert team.short_name == "Gunners"


@pytest.mark.asyncio
async def test_empty_upsert_writes_nothing(writer) -> None:
    result = await writer.upsert_fixtures([])
    assert result.written == 0 and result.total_batches == 0


# ── Overlay mutations ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_apply_live_update(db, writer, make_fixture) -> None:
    await writer.upsert_fixtures([make_fixture(1, "Arsenal", "Chelsea")])
    row = await _row(db, 1)
    live = LiveUpdate(
        provider_fixture_id=9001,
        league_code="PL",
        home_name="Arsenal",
        away_name="Chelsea",
        status=FixtureStatus.SECOND_HALF,
        minute=58,
        home_score=1,
        away_score=0,
    )

    assert await writer.apply_live_update(row.id, live)
    row = await _row(db, 1)
    assert row.status == "2H"
    assert row.minute == 58
    assert (row.home_score, row.away_score) == (1, 0)


@pytest.mark.asyncio
async def test_apply_live_update_to_missing_row(writer) -> None:
    live = LiveUpdate(
        provider_fixture_id=1, league_code="PL", home_name="A", away_name="B", status=FixtureStatus.LIVE
    )
    assert not await writer.apply_live_update(424242, live)


@pytest.mark.asyncio
async def test_mark_finished_only_touches_live_rows(db, writer, make_fixture) -> None:
    await writer.upsert_fixtures(
        [
            make_fixture(1, "Arsenal", "Chelsea", status=FixtureStatus.SECOND_HALF, score=(1, 1)),
            make_fixture(2, "Everton", "Fulham", status=FixtureStatus.NOT_STARTED),
            make_fixture(3, "Leeds", "Burnley", status=FixtureStatus.POSTPONED),
        ]
    )
    ids = [(await _row(db, pid)).id for pid in (1, 2, 3)]

    assert await writer.mark_finished(ids) == 1
    assert (await _row(db, 1)).status == "FT"
    assert (await _row(db, 1)).home_score == 1
    assert (await _row(db, 2)).status == "NS"
    assert (await _row(db, 3)).status == "PST"
    assert await writer.mark_finished([]) == 0


# ── Reader ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fixtures_for_date_ordered_and_fresh(db, writer, reader, make_fixture) -> None:
    late = datetime(2025, 8, 16, 19, 30, tzinfo=timezone.utc)
    early = datetime(2025, 8, 16, 11, 30, tzinfo=timezone.utc)
    await writer.upsert_fixtures(
        [make_fixture(1, "Arsenal", "Chelsea", kickoff=late), make_fixture(2, "Everton", "Fulham", kickoff=early)]
    )

    cached = await reader.fixtures_for_date("soccer", DAY)

    assert [r.provider_id for r in cached.rows] == [2, 1]
    assert cached.is_fresh
    assert cached.last_updated == NOW
    payload = fixture_to_dict(cached.rows[0])
    assert payload["home"]["name"] == "Everton"
    assert payload["kickoff"] == "2025-08-16T11:30:00+00:00"


@pytest.mark.asyncio
async def test_stale_rows_are_still_served(db, writer, make_fixture) -> None:
    await writer.upsert_fixtures([make_fixture(1, "Arsenal", "Chelsea")])
    later = CacheReader(db, freshness_window_s=60, clock=lambda: NOW + timedelta(minutes=5))

    cached = await later.fixtures_for_date("soccer", DAY)

    assert len(cached.rows) == 1
    assert not cached.is_fresh


@pytest.mark.asyncio
async def test_empty_result_is_not_fresh(reader) -> None:
    cached = await reader.fixtures_for_date("soccer", DAY)
    assert cached.rows == [] and not cached.is_fresh and cached.last_updated is None


@pytest.mark.asyncio
async def test_fixtures_for_team(db, writer, reader, make_fixture) -> None:
    await writer.upsert_fixtures(
        [
            make_fixture(1, "Arsenal", "Chelsea", home_id=57, away_id=61),
            make_fixture(2, "Chelsea", "Fulham", home_id=61, away_id=63,
                         kickoff=datetime(2025, 8, 23, 14, 0, tzinfo=timezone.utc)),
            make_fixture(3, "Everton", "Fulham", home_id=62, away_id=63),
        ]
    )
    cached = await reader.fixtures_for_team("soccer", 61)
    assert [r.provider_id for r in cached.rows] == [1, 2]


@pytest.mark.asyncio
async def test_live_rows_and_details_candidates(db, writer, reader, make_fixture) -> None:
    await writer.upsert_fixtures(
        [
            make_fixture(1, "Arsenal", "Chelsea", status=FixtureStatus.HALF_TIME, score=(0, 0)),
            make_fixture(2, "Everton", "Fulham", status=FixtureStatus.FINISHED, score=(3, 2)),
            make_fixture(3, "Leeds", "Burnley"),
        ]
    )
    live = await reader.live_rows("soccer", DAY)
    assert [c.home_name for c in live] == ["Arsenal"]
    assert live[0].status is FixtureStatus.HALF_TIME
    assert live[0].kickoff.tzinfo is not None

    needing = await reader.fixtures_needing_details("soccer", 10)
    assert [r.provider_id for r in needing] == [2]


@pytest.mark.asyncio
async def test_standings_latest_season(writer, reader) -> None:
    await writer.upsert_standings(
        [
            StandingsSnapshot(league_code="PL", league_name="Premier League", season=2024, table=[{"position": 1}]),
            StandingsSnapshot(league_code="PL", league_name="Premier League", season=2025, table=[{"position": 2}]),
        ]
    )
    row = await reader.standings("soccer", "pl")
    assert row.season == 2025
    assert row.standings == {"table": [{"position": 2}]}
    assert await reader.standings("soccer", "SA") is None


@pytest.mark.asyncio
async def test_golf_rows(writer, reader) -> None:
    event = GolfEvent(
        tour="pga",
        provider_event_id="401703504",
        name="BMW Championship",
        event_date=date(2025, 8, 14),
        status=GolfEventStatus.IN_PROGRESS,
        envelope=PayloadEnvelope(payload={"id": "401703504"}),
    )
    await writer.upsert_golf_events([event])
    await writer.upsert_golf_standings(
        [GolfStandings(tour="pga", data_type=GolfDataType.LEADERS, envelope=PayloadEnvelope(payload={"x": 1}))]
    )

    cached = await reader.golf_events("PGA")
    assert [r.id for r in cached.rows] == ["golf_pga_401703504"]
    assert (await reader.golf_event("golf_pga_401703504")).event_data == {"id": "401703504"}
    assert (await reader.golf_standings("pga", "leaders")).data == {"x": 1}
    assert await reader.golf_standings("liv", "leaders") is None


def _game(game_id: str, sport_type: str, hour: int, status: GameStatus = GameStatus.FINAL) -> Game:
    return Game(
        provider_game_id=game_id,
        sport_type=sport_type,
        game_date=DAY,
        kickoff=datetime(2025, 8, 16, hour, 0, tzinfo=timezone.utc),
        status=status,
        home=GameSide(team_id="1", name="Home Side", abbreviation="HOM", score=7),
        away=GameSide(team_id="2", name="Away Side", abbreviation="AWY", score=3),
    )


@pytest.mark.asyncio
async def test_games_keyed_by_id_and_sport(writer, reader) -> None:
    # ESPN ids are only unique within a sport.
    result = await writer.upsert_games([
        _game("401", "football_nfl", 23),
        _game("400", "football_nfl", 17, GameStatus.SCHEDULED),
        _game("401", "football_college", 20),
    ])
    assert result.written == 3

    nfl = await reader.games_for_date("football_nfl", DAY)
    assert [r.provider_game_id for r in nfl.rows] == ["400", "401"]
    assert nfl.is_fresh
    scheduled = game_to_dict(nfl.rows[0])
    assert scheduled["status"] == "scheduled"
    assert (scheduled["home"]["score"], scheduled["away"]["score"]) == (None, None)
    assert game_to_dict(nfl.rows[1])["home"]["score"] == 7
    assert len((await reader.games_for_date("football_college", DAY)).rows) == 1
    assert (await reader.games_for_date("football_nfl", date(2025, 8, 17))).rows == []


# ── Run log ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "total, failed, expected",
    [
        (10, 0, SyncRunStatus.SUCCESS),
        (0, 0, SyncRunStatus.SUCCESS),
        (10, 3, SyncRunStatus.PARTIAL),
        (10, 10, SyncRunStatus.ERROR),
    ],
)
def test_derive_status(total: int, failed: int, expected: SyncRunStatus) -> None:
    assert derive_status(total, failed) is expected


@pytest.mark.asyncio
async def test_track_run_writes_row(db) -> None:
    log = RunLogger(db)
    async with log.track_run("fixtures", "soccer") as summary:
        summary.synced = 12
        summary.units_total = 4
        summary.units_failed = 1
        summary.errors.append("2025-08-17: boom")
        settle_status(summary)

    async with db.read_session() as session:
        run = (await session.execute(select(SyncRunORM))).scalar_one()
    assert run.status == "partial"
    assert run.records_synced == 12
    assert run.error_message == "2025-08-17: boom"


@pytest.mark.asyncio
async def test_track_run_records_error_and_reraises(db) -> None:
    log = RunLogger(db)
    with pytest.raises(RuntimeError):
        async with log.track_run("live", "soccer"):
            raise RuntimeError("snapshot unavailable")

    async with db.read_session() as session:
        run = (await session.execute(select(SyncRunORM))).scalar_one()
    assert run.status == "error"
    assert "snapshot unavailable" in run.error_message


@pytest.mark.asyncio
async def test_cancelled_run_is_recorded_as_error(db) -> None:
    log = RunLogger(db)
    entered = asyncio.Event()

    async def body() -> None:
        async with log.track_run("fixtures", "soccer") as summary:
            summary.synced = 3
            entered.set()
            await asyncio.Event().wait()

    task = asyncio.create_task(body())
    await entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    async with db.read_session() as session:
        run = (await session.execute(select(SyncRunORM))).scalar_one()
    assert run.status == "error"
    assert run.error_message == "cancelled"
    assert run.records_synced == 3


@pytest.mark.asyncio
async def test_run_log_write_failure_keeps_pass_error(db) -> None:
    log = RunLogger(db)
    log.record = AsyncMock(side_effect=OperationalError("INSERT INTO sync_log", {}, Exception("disk I/O error")))

    with pytest.raises(RuntimeError, match="snapshot unavailable"):
        async with log.track_run("live", "soccer"):
            raise RuntimeError("snapshot unavailable")

    log.record.assert_awaited_once()
    assert log.record.await_args.args[3] is SyncRunStatus.ERROR
    assert await _count(db, SyncRunORM) == 0


@pytest.mark.asyncio
async def test_run_log_write_failure_is_swallowed_on_success(db) -> None:
    log = RunLogger(db)
    log.record = AsyncMock(side_effect=OperationalError("INSERT INTO sync_log", {}, Exception("disk I/O error")))

    async with log.track_run("standings", "soccer") as summary:
        summary.synced = 5

    assert summary.status is SyncRunStatus.SUCCESS
    log.record.assert_awaited_once()


@pytest.mark.asyncio
async def test_errors_alone_downgrade_success() -> None:
    summary = SyncSummary(sync_type="golf", sport_type="golf", units_total=2, errors=["event 1: bad"])
    assert settle_status(summary) is SyncRunStatus.PARTIAL
