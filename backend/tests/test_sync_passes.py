"""
End-to-end sync pass tests against fake provider transports and an
in-memory SQLite cache.

Run: pytest backend/tests/test_sync_passes.py -v
"""
from __future__ import annotations

from datetime import date, datetime, timezone

import httpx
import pytest
from sqlalchemy import select

from shared.errors import UpstreamUnavailable
from shared.models.enums import EspnSyncMode, FixtureStatus, GolfSyncMode, ProviderName, SyncRunStatus
from shared.models.orm import FixtureORM, GolfStandingsORM, SyncRunORM

from scheduler.jobs.details import sync_match_details
from scheduler.jobs.espn import sync_espn
from scheduler.jobs.fixtures import backfill_fixtures, split_range, sync_fixtures_window
from scheduler.jobs.golf import sync_golf
from scheduler.jobs.live import sync_live
from scheduler.jobs.standings import sync_standings

DAY = date(2025, 8, 16)
FD = ProviderName.FOOTBALL_DATA
AF = ProviderName.API_FOOTBALL
ESPN = ProviderName.ESPN_GOLF
SCOREBOARD = ProviderName.ESPN_SCOREBOARD


async def _runs(db) -> list[SyncRunORM]:
    async with db.read_session() as session:
        return list((await session.execute(select(SyncRunORM).order_by(SyncRunORM.id))).scalars().all())


async def _fixture(db, provider_id: int) -> FixtureORM:
    async with db.read_session() as session:
        result = await session.execute(select(FixtureORM).where(FixtureORM.provider_id == provider_id))
        return result.scalar_one()


def _live_entry(fixture_id: int, league_id: int, home: str, away: str, short: str = "2H",
                elapsed: int = 70, goals: tuple[int, int] = (1, 0)) -> dict:
    return {
        "fixture": {"id": fixture_id, "status": {"short": short, "elapsed": elapsed}},
        "league": {"id": league_id},
        "teams": {"home": {"name": home}, "away": {"name": away}},
        "goals": {"home": goals[0], "away": goals[1]},
    }


# ── Fixtures window ─────────────────────────────────────────────────────

def test_split_range_respects_window_limit() -> None:
    windows = split_range(date(2025, 8, 9), date(2025, 9, 15), 10)
    assert windows[0] == (date(2025, 8, 9), date(2025, 8, 18))
    assert windows[-1] == (date(2025, 9, 8), date(2025, 9, 15))
    assert len(windows) == 4
    assert split_range(DAY, DAY, 10) == [(DAY, DAY)]
    assert split_range(DAY, date(2025, 8, 15), 10) == []


@pytest.mark.asyncio
async def test_fixtures_window_end_to_end(db, make_ctx, transport, fd_match) -> None:
    calls: list[httpx.Request] = []
    pl = [
        fd_match(1, "Arsenal FC", "Chelsea FC"),
        fd_match(2, "Everton FC", "Fulham FC", utc_date="2025-08-17T16:00:00Z"),
        fd_match(3, "Leeds United FC", "Burnley FC", utc_date="2025-08-15T19:00:00Z",
                 status="FINISHED", score=(2, 1)),
    ]
    ctx = await make_ctx(
        {FD: transport({"/competitions/PL/matches": {"matches": pl},
                        "/competitions/CL/matches": {"matches": []}}, calls)},
        fixtures_days_back=1,
        fixtures_days_ahead=1,
    )

    summary = await sync_fixtures_window(ctx)

    assert summary.status is SyncRunStatus.SUCCESS
    assert summary.synced == 3
    assert summary.details["teams"] == 6
    assert [c.url.params["dateFrom"] for c in calls] == ["2025-08-15", "2025-08-15"]
    assert [c.url.params["dateTo"] for c in calls] == ["2025-08-17", "2025-08-17"]

    today = await ctx.reader.fixtures_for_date("soccer", DAY)
    assert [r.provider_id for r in today.rows] == [1]
    finished = await _fixture(db, 3)
    assert finished.status == "FT"
    assert (finished.home_score, finished.away_score) == (2, 1)
    assert finished.match_date == date(2025, 8, 15)

    runs = await _runs(db)
    assert [(r.sync_type, r.status, r.records_synced) for r in runs] == [("fixtures", "success", 3)]


@pytest.mark.asyncio
async def test_fixtures_window_rerun_does_not_duplicate(db, make_ctx, transport, fd_match) -> None:
    routes = {"/competitions/PL/matches": {"matches": [fd_match(1, "Arsenal FC", "Chelsea FC")]},
              "/competitions/CL/matches": {"matches": []}}
    ctx = await make_ctx({FD: transport(routes)}, fixtures_days_back=0, fixtures_days_ahead=0)

    await sync_fixtures_window(ctx)
    routes["/competitions/PL/matches"] = {
        "matches": [fd_match(1, "Arsenal FC", "Chelsea FC", status="FINISHED", score=(0, 3))]
    }
    await sync_fixtures_window(ctx)

    rows = (await ctx.reader.fixtures_for_date("soccer", DAY)).rows
    assert len(rows) == 1
    assert rows[0].status == "FT" and rows[0].away_score == 3


@pytest.mark.asyncio
async def test_one_failing_league_is_partial(db, make_ctx, transport, fd_match) -> None:
    ctx = await make_ctx(
        {FD: transport({
            "/competitions/PL/matches": {"matches": [fd_match(1, "Arsenal FC", "Chelsea FC")]},
            "/competitions/CL/matches": httpx.Response(403, json={"message": "restricted"}),
        })},
        fixtures_days_back=0,
        fixtures_days_ahead=0,
    )

    summary = await sync_fixtures_window(ctx)

    assert summary.status is SyncRunStatus.PARTIAL
    assert summary.synced == 1
    assert summary.units_failed == 1
    assert any("CL" in e for e in summary.errors)


@pytest.mark.asyncio
async def test_rejected_cache_batch_is_partial(db, make_ctx, transport, fd_match, flaky_writer) -> None:
    pl = [fd_match(i, f"Home {i} FC", f"Away {i} FC") for i in range(1, 8)]
    ctx = await make_ctx(
        {FD: transport({"/competitions/PL/matches": {"matches": pl},
                        "/competitions/CL/matches": {"matches": []}})},
        fixtures_days_back=0,
        fixtures_days_ahead=0,
    )
    ctx.writer = flaky_writer(batch_size=3, fail_on=2)

    summary = await sync_fixtures_window(ctx)

    assert summary.status is SyncRunStatus.PARTIAL
    assert summary.synced == 4
    assert summary.details["failed_batches"] == 1
    assert any("batch 2" in e for e in summary.errors)
    assert len((await ctx.reader.fixtures_for_date("soccer", DAY)).rows) == 4

    runs = await _runs(db)
    assert [(r.sync_type, r.status, r.records_synced) for r in runs] == [("fixtures", "partial", 4)]


@pytest.mark.asyncio
async def test_every_league_failing_is_error(db, make_ctx, transport) -> None:
    ctx = await make_ctx(
        {FD: transport({"/matches": httpx.Response(403, json={"message": "restricted"})})},
        fixtures_days_back=0,
        fixtures_days_ahead=0,
    )

    summary = await sync_fixtures_window(ctx)

    assert summary.status is SyncRunStatus.ERROR
    assert summary.synced == 0
    assert (await _runs(db))[0].status == "error"


@pytest.mark.asyncio
async def test_malformed_record_is_skipped_and_reported(db, make_ctx, transport, fd_match) -> None:
    bad = fd_match(2, "Everton FC", "Fulham FC")
    bad["utcDate"] = None
    ctx = await make_ctx(
        {FD: transport({"/competitions/PL/matches": {"matches": [fd_match(1, "Arsenal FC", "Chelsea FC"), bad]},
                        "/competitions/CL/matches": {"matches": []}})},
        fixtures_days_back=0,
        fixtures_days_ahead=0,
    )

    summary = await sync_fixtures_window(ctx)

    assert summary.synced == 1
    assert summary.details["malformed"] == 1
    assert summary.status is SyncRunStatus.PARTIAL


# ── Backfill ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_backfill_rejects_inverted_range(db, make_ctx) -> None:
    ctx = await make_ctx()
    with pytest.raises(ValueError):
        await backfill_fixtures(ctx, date(2025, 8, 20), date(2025, 8, 10))
    assert await _runs(db) == []


@pytest.mark.asyncio
async def test_backfill_walks_days_in_batches(db, make_ctx, transport, sleep, fd_match) -> None:
    calls: list[httpx.Request] = []

    def matches(request: httpx.Request) -> httpx.Response:
        day = request.url.params["dateFrom"]
        raw = fd_match(int(day.replace("-", "")), "Arsenal FC", "Chelsea FC", utc_date=f"{day}T14:00:00Z")
        return httpx.Response(200, json={"matches": [raw]})

    ctx = await make_ctx({FD: transport({"/matches": matches}, calls)}, backfill_batch_days=2)

    summary = await backfill_fixtures(ctx, date(2025, 8, 14), date(2025, 8, 16))

    assert summary.status is SyncRunStatus.SUCCESS
    assert summary.synced == 3
    assert sorted(c.url.params["dateFrom"] for c in calls) == ["2025-08-14", "2025-08-15", "2025-08-16"]
    assert all(c.url.params["competitions"] == "PL,CL" for c in calls)
    # Two chunks of days, one pause between them.
    assert sleep.calls == [ctx.settings.backfill_inter_batch_delay_s]


# ── Standings ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_standings_skip_cups(db, make_ctx, transport) -> None:
    calls: list[httpx.Request] = []
    table = {
        "competition": {"name": "Premier League"},
        "season": {"startDate": "2025-08-15"},
        "standings": [{"type": "TOTAL", "table": [
            {"position": 1, "team": {"id": 64, "name": "Liverpool FC", "shortName": "Liverpool"}, "points": 3},
        ]}],
    }
    ctx = await make_ctx({FD: transport({"/competitions/PL/standings": table}, calls)})

    summary = await sync_standings(ctx)

    assert summary.status is SyncRunStatus.SUCCESS
    assert summary.details["leagues"] == ["PL"]
    assert [c.url.path for c in calls] == ["/v4/competitions/PL/standings"]
    row = await ctx.reader.standings("soccer", "PL")
    assert row.season == 2025
    assert row.standings["table"][0]["team_name"] == "Liverpool FC"


# ── Match details ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_match_details_enrichment(db, make_ctx, transport, sleep, make_fixture) -> None:
    routes = {
        "/matches/501": {"id": 501, "referees": [{"name": "M. Oliver"}]},
        "/matches/501/head2head": {"aggregates": {"numberOfMatches": 5}},
        "/matches/502": httpx.Response(404, json={"message": "not found"}),
    }
    ctx = await make_ctx({FD: transport(routes)})
    await ctx.writer.upsert_fixtures([
        make_fixture(501, "Arsenal", "Chelsea", status=FixtureStatus.FINISHED, score=(1, 0)),
        make_fixture(502, "Everton", "Fulham", status=FixtureStatus.FINISHED, score=(0, 0),
                     kickoff=datetime(2025, 8, 16, 11, 30, tzinfo=timezone.utc)),
        make_fixture(503, "Leeds", "Burnley"),
    ])

    summary = await sync_match_details(ctx)

    assert summary.details["candidates"] == 2
    assert summary.synced == 1
    assert summary.status is SyncRunStatus.PARTIAL
    assert sleep.calls == [ctx.settings.details_delay_s]

    enriched = await _fixture(db, 501)
    assert enriched.match_details["schema_version"] == 1
    payload = enriched.match_details["payload"]
    assert payload["match"]["referees"][0]["name"] == "M. Oliver"
    assert payload["head2head"]["aggregates"]["numberOfMatches"] == 5
    assert payload["fetched_at"] == "2025-08-16T18:00:00+00:00"
    assert (await _fixture(db, 502)).match_details is None

    # Enriched rows are not picked again.
    remaining = await ctx.reader.fixtures_needing_details("soccer", 10)
    assert [r.provider_id for r in remaining] == [502]


# ── Live overlay ────────────────────────────────────────────────────────

@pytest.fixture
def seed_today(make_fixture):
    async def _seed(writer) -> None:
        await writer.upsert_fixtures([
            make_fixture(1, "Newcastle United FC", "Aston Villa FC"),
            make_fixture(2, "Arsenal FC", "Chelsea FC", status=FixtureStatus.SECOND_HALF, score=(1, 1)),
            make_fixture(3, "FC København", "Malmö FF", league_code="CL", status=FixtureStatus.SECOND_HALF,
                         score=(0, 0), kickoff=datetime(2025, 8, 16, 16, 30, tzinfo=timezone.utc)),
            make_fixture(4, "Real Madrid CF", "Real Betis Balompié", league_code="PD"),
            make_fixture(5, "Real Oviedo", "Real Valladolid CF", league_code="PD"),
        ])
    return _seed


@pytest.mark.asyncio
async def test_live_overlay_pass(db, make_ctx, transport, seed_today) -> None:
    snapshot = {
        "errors": [],
        "response": [
            _live_entry(9001, 39, "Newcastle", "Aston Villa", short="2H", elapsed=63, goals=(2, 0)),
            _live_entry(9002, 140, "Real Sociedad", "Real Mallorca", short="1H", elapsed=20),
            _live_entry(9003, 9999, "Some Club", "Other Club"),
        ],
    }
    ctx = await make_ctx({AF: transport({"/fixtures": snapshot})}, live_update_concurrency=1)
    await seed_today(ctx.writer)

    summary = await sync_live(ctx)

    assert summary.status is SyncRunStatus.SUCCESS
    assert summary.details["matched"] == 1
    assert summary.details["ambiguous"] == 1
    assert summary.details["untracked"] == 1
    assert summary.details["orphans_finalized"] == 1
    assert summary.synced == 2

    newcastle = await _fixture(db, 1)
    assert (newcastle.status, newcastle.minute, newcastle.home_score, newcastle.away_score) == ("2H", 63, 2, 0)

    # Dropped out of the snapshot 240 minutes after a league kickoff.
    arsenal = await _fixture(db, 2)
    assert arsenal.status == "FT"
    assert (arsenal.home_score, arsenal.away_score) == (1, 1)

    # Cup fixture 90 minutes in: still inside the extra-time allowance.
    assert (await _fixture(db, 3)).status == "2H"

    # Ambiguous entry writes nothing.
    assert (await _fixture(db, 4)).status == "NS"
    assert (await _fixture(db, 5)).status == "NS"


@pytest.mark.asyncio
async def test_live_snapshot_failure_skips_reconciliation(db, make_ctx, transport, seed_today) -> None:
    ctx = await make_ctx({AF: transport({"/fixtures": httpx.Response(403, json={"message": "forbidden"})})})
    await seed_today(ctx.writer)

    with pytest.raises(UpstreamUnavailable):
        await sync_live(ctx)

    assert (await _fixture(db, 2)).status == "2H"
    runs = await _runs(db)
    assert [(r.sync_type, r.status) for r in runs] == [("live", "error")]


@pytest.mark.asyncio
async def test_empty_snapshot_still_reconciles(db, make_ctx, transport, seed_today) -> None:
    ctx = await make_ctx({AF: transport({"/fixtures": {"errors": [], "response": []}})})
    await seed_today(ctx.writer)

    summary = await sync_live(ctx)

    assert summary.details["orphans_finalized"] == 1
    assert (await _fixture(db, 2)).status == "FT"
    assert (await _fixture(db, 3)).status == "2H"


# ── Golf ────────────────────────────────────────────────────────────────

def _scoreboard_event(event_id: str, name: str, status: str) -> dict:
    return {
        "id": event_id,
        "name": name,
        "date": "2025-08-14T04:00Z",
        "competitions": [{"status": {"type": {"name": status}}}],
    }


def _summary(request: httpx.Request) -> httpx.Response:
    event_id = request.url.params["event"]
    return httpx.Response(200, json={
        "header": {
            "event": {"id": event_id, "name": f"Event {event_id}", "date": "2025-08-14T04:00Z"},
            "competitions": [{"status": {"type": {"name": "STATUS_IN_PROGRESS"}}}],
        },
        "leaderboard": [{"athlete": "S. Scheffler", "score": "-12"}],
    })


@pytest.fixture
def golf_routes() -> dict:
    return {
        "/pga/scoreboard": {
            "events": [
                _scoreboard_event("401", "BMW Championship", "STATUS_IN_PROGRESS"),
                _scoreboard_event("402", "TOUR Championship", "STATUS_SCHEDULED"),
            ],
            "leagues": [{"calendar": [{"id": "401"}, {"id": "402"}]}],
        },
        "/pga/summary": _summary,
        "/pga/statistics": {"stats": [{"name": "scoringAverage"}]},
        "/pga/leaders": {"leaders": [{"name": "cupPoints"}]},
        "/liv/scoreboard": {
            "events": [_scoreboard_event("501", "LIV Chicago", "STATUS_SCHEDULED")],
            "leagues": [{"calendar": []}],
        },
        "/liv/summary": _summary,
    }


@pytest.mark.asyncio
async def test_golf_live_refreshes_events_in_progress(db, make_ctx, transport, golf_routes) -> None:
    calls: list[httpx.Request] = []
    ctx = await make_ctx({ESPN: transport(golf_routes, calls)})

    summary = await sync_golf(ctx, GolfSyncMode.LIVE)

    assert summary.status is SyncRunStatus.SUCCESS
    assert summary.synced == 3
    assert summary.details["mode"] == "live"
    summaries = [c.url.params["event"] for c in calls if c.url.path.endswith("/summary")]
    assert summaries == ["401"]

    live_event = await ctx.reader.golf_event("golf_pga_401")
    assert live_event.status == "in_progress"
    assert live_event.event_data["leaderboard"][0]["score"] == "-12"
    assert (await ctx.reader.golf_event("golf_pga_402")).status == "scheduled"
    assert (await ctx.reader.golf_event("golf_liv_501")).event_name == "LIV Chicago"


@pytest.mark.asyncio
async def test_golf_full_stores_standings(db, make_ctx, transport, golf_routes) -> None:
    calls: list[httpx.Request] = []
    ctx = await make_ctx({ESPN: transport(golf_routes, calls)})

    summary = await sync_golf(ctx, GolfSyncMode.FULL)

    assert summary.status is SyncRunStatus.SUCCESS
    assert summary.details["tours"]["pga"] == {"events": 2, "standings": 3, "errors": 0}
    assert summary.details["tours"]["liv"] == {"events": 1, "standings": 1, "errors": 0}
    assert not any(c.url.path.endswith("/liv/leaders") for c in calls)
    assert any(c.url.path == "/apis/site/v3/sports/golf/pga/leaders" for c in calls)

    async with db.read_session() as session:
        ids = sorted((await session.execute(select(GolfStandingsORM.id))).scalars().all())
    assert ids == ["liv_schedule", "pga_leaders", "pga_rankings", "pga_schedule"]
    schedule = await ctx.reader.golf_standings("pga", "schedule")
    assert schedule.data == {"calendar": [{"id": "401"}, {"id": "402"}]}


@pytest.mark.asyncio
async def test_golf_failed_tour_is_partial(db, make_ctx, transport, golf_routes) -> None:
    golf_routes["/liv/scoreboard"] = httpx.Response(404, json={"message": "unknown league"})
    ctx = await make_ctx({ESPN: transport(golf_routes)})

    summary = await sync_golf(ctx, GolfSyncMode.LIVE)

    assert summary.status is SyncRunStatus.PARTIAL
    assert summary.units_failed == 1
    assert "error" in summary.details["tours"]["liv"]
    assert summary.synced == 2


# ── ESPN games ──────────────────────────────────────────────────────────

def _by_day(games_by_day: dict[str, list[dict]]):
    """Scoreboard handler answering with the events listed for the requested day."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"events": games_by_day.get(request.url.params["dates"], [])})

    return handler


@pytest.mark.asyncio
async def test_espn_live_pass_covers_each_sport_and_day(db, make_ctx, transport, espn_event, sleep) -> None:
    calls: list[httpx.Request] = []
    yankees = espn_event("9001", "New York Yankees", "Boston Red Sox",
                         status="STATUS_IN_PROGRESS", state="in", score=("4", "1"), period=6)
    routes = {
        "/baseball/mlb/scoreboard": _by_day({
            "20250815": [espn_event("9000", "Chicago Cubs", "St. Louis Cardinals",
                                    date="2025-08-15T18:20Z", status="STATUS_FINAL", state="post",
                                    score=("5", "3"))],
            "20250816": [yankees],
            # ESPN repeats a game on the next day's board until it ends.
            "20250817": [yankees],
        }),
        "/basketball/mens-college-basketball/scoreboard": _by_day({}),
    }
    ctx = await make_ctx({SCOREBOARD: transport(routes, calls)}, espn_live_days_around=1)

    summary = await sync_espn(ctx, EspnSyncMode.LIVE, sports=["mlb", "basketball"])

    assert summary.status is SyncRunStatus.SUCCESS
    assert summary.synced == 2
    assert summary.units_total == 7
    assert summary.details["mode"] == "live"
    assert (summary.details["date_from"], summary.details["date_to"]) == ("2025-08-15", "2025-08-17")
    assert summary.details["sports"]["baseball"] == {"games": 3, "malformed": 0, "fetch_failed": 0}
    assert summary.details["sports"]["basketball"] == {"games": 0, "malformed": 0, "fetch_failed": 0}
    assert sorted(c.url.params["dates"] for c in calls) == ["20250815", "20250815", "20250816",
                                                            "20250816", "20250817", "20250817"]
    college = [c for c in calls if "college" in c.url.path]
    assert {c.url.params["groups"] for c in college} == {"50"}
    assert all("groups" not in c.url.params for c in calls if "mlb" in c.url.path)
    assert sleep.calls == [ctx.settings.espn_sport_delay_s]

    today = await ctx.reader.games_for_date("baseball", DAY)
    assert [r.provider_game_id for r in today.rows] == ["9001"]
    row = today.rows[0]
    assert (row.status, row.home_score, row.away_score, row.period) == ("in_progress", 4, 1, 6)
    assert today.is_fresh

    runs = await _runs(db)
    assert [(r.sync_type, r.sport_type, r.status, r.records_synced) for r in runs] == [
        ("espn_games", "espn", "success", 2)
    ]


@pytest.mark.asyncio
async def test_espn_repeat_pass_updates_game_in_place(db, make_ctx, transport, espn_event) -> None:
    boards = {"20250816": [espn_event("9101", "Boston Celtics", "Miami Heat")]}
    ctx = await make_ctx({SCOREBOARD: transport({"/basketball/nba/scoreboard": _by_day(boards)})})

    await sync_espn(ctx, EspnSyncMode.DATE, sports=["nba"], day=DAY)
    boards["20250816"] = [espn_event("9101", "Boston Celtics", "Miami Heat", status="STATUS_FINAL_OT",
                                     state="post", score=("118", "115"), period=5)]
    await sync_espn(ctx, EspnSyncMode.DATE, sports=["nba"], day=DAY)

    rows = (await ctx.reader.games_for_date("basketball_nba", DAY)).rows
    assert len(rows) == 1
    assert (rows[0].status, rows[0].home_score, rows[0].away_score) == ("final", 118, 115)


@pytest.mark.asyncio
async def test_espn_failed_sport_is_partial(db, make_ctx, transport, espn_event) -> None:
    routes = {
        "/hockey/nhl/scoreboard": httpx.Response(404, json={"message": "not found"}),
        "/football/nfl/scoreboard": _by_day({"20250816": [
            espn_event("9201", "Chicago Bears", "Green Bay Packers"),
            {"id": "9202", "date": "2025-08-16T17:00Z", "competitions": []},
        ]}),
    }
    ctx = await make_ctx({SCOREBOARD: transport(routes)})

    summary = await sync_espn(ctx, EspnSyncMode.DATE, sports=["nhl", "nfl"], day=DAY)

    assert summary.status is SyncRunStatus.PARTIAL
    assert summary.synced == 1
    assert summary.units_failed == 1
    assert summary.details["sports"]["hockey_nhl"]["fetch_failed"] == 1
    assert summary.details["sports"]["football_nfl"] == {"games": 1, "malformed": 1, "fetch_failed": 0}
    assert any("without competitions" in e for e in summary.errors)


@pytest.mark.asyncio
async def test_espn_bad_arguments_write_no_run(db, make_ctx, transport) -> None:
    ctx = await make_ctx({SCOREBOARD: transport({})})

    with pytest.raises(ValueError, match="date mode"):
        await sync_espn(ctx, EspnSyncMode.DATE)
    with pytest.raises(ValueError, match="unknown ESPN sport"):
        await sync_espn(ctx, EspnSyncMode.LIVE, sports=["curling"])

    assert await _runs(db) == []
