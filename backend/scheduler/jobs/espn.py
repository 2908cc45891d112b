"""
ESPN multi-sport games sync.

Each work unit is one sport's scoreboard for one calendar day:

full: [today - espn_days_back, today + espn_days_ahead]
live: today +/- espn_live_days_around
date: a single requested day

Sports run one after another with a short pause between them; a sport's
days are fetched in small concurrent chunks. Every game from a pass is
upserted together, keyed by (provider_game_id, sport_type).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional, Sequence

from shared.errors import MalformedRecord
from shared.models.domain import Game, SyncSummary
from shared.models.enums import EspnSyncMode, Sport, SyncType
from shared.models.espn_sports import EspnSport, espn_sport
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import normalize_espn_game
from scheduler.context import SyncContext
from scheduler.engine.batching import BatchItemResult, run_batched
from scheduler.jobs.fixtures import days_between
from store.run_log import settle_status

logger = get_logger(__name__)


@dataclass(frozen=True)
class GameDay:
    sport: EspnSport
    day: date

    def __str__(self) -> str:
        return f"{self.sport.key.value} {self.day}"


def resolve_sports(keys: Optional[Sequence[str]], default: Sequence[str]) -> list[EspnSport]:
    """Registry entries for ``keys`` (or the configured default), in order and deduplicated."""
    out: dict[str, EspnSport] = {}
    for key in keys or default:
        try:
            sport = espn_sport(key.strip().lower())
        except ValueError as exc:
            raise ValueError(f"unknown ESPN sport {key!r}") from exc
        out.setdefault(sport.sport_type, sport)
    return list(out.values())


def sync_days(ctx: SyncContext, mode: EspnSyncMode, day: Optional[date]) -> list[date]:
    settings = ctx.settings
    if mode is EspnSyncMode.DATE:
        if day is None:
            raise ValueError("date mode needs a day")
        return [day]
    today = day or ctx.today()
    if mode is EspnSyncMode.LIVE:
        around = timedelta(days=settings.espn_live_days_around)
        return days_between(today - around, today + around)
    return days_between(
        today - timedelta(days=settings.espn_days_back),
        today + timedelta(days=settings.espn_days_ahead),
    )


async def sync_espn(
    ctx: SyncContext,
    mode: EspnSyncMode = EspnSyncMode.LIVE,
    sports: Optional[Sequence[str]] = None,
    day: Optional[date] = None,
) -> SyncSummary:
    """
    Fetch, normalize and upsert ESPN scoreboard games.

    ``day`` anchors the window in full and live modes and is required in
    date mode. Unknown sport keys and a date-mode call without a day raise
    ValueError before any run is recorded.
    """
    settings = ctx.settings
    selected = resolve_sports(sports, settings.espn_sports)
    days = sync_days(ctx, mode, day)
    provider = ctx.providers.espn_scoreboard

    async def fetch(unit: GameDay) -> list[dict[str, Any]]:
        return await provider.scoreboard(unit.sport, unit.day)

    async with ctx.run_logger.track_run(SyncType.ESPN_GAMES.value, Sport.ESPN.value) as summary:
        await ctx.db.ping()
        results: list[BatchItemResult[GameDay, list[dict[str, Any]]]] = []
        for index, sport in enumerate(selected):
            if index:
                await ctx.sleep(settings.espn_sport_delay_s)
            results.extend(await run_batched(
                [GameDay(sport, d) for d in days],
                settings.espn_fetch_concurrency,
                fetch,
                label=f"espn_{sport.key.value}",
                sleep=ctx.sleep,
            ))

        games: list[Game] = []
        per_sport: dict[str, dict[str, int]] = {
            s.sport_type: {"games": 0, "malformed": 0, "fetch_failed": 0} for s in selected
        }
        for res in results:
            counts = per_sport[res.item.sport.sport_type]
            if not res.ok:
                counts["fetch_failed"] += 1
                summary.errors.append(res.error or str(res.item))
                continue
            for raw in res.value or []:
                try:
                    games.append(normalize_espn_game(raw, res.item.sport.sport_type, settings.reference_timezone))
                except MalformedRecord as exc:
                    counts["malformed"] += 1
                    summary.errors.append(str(exc))
                    logger.warning("espn_game_malformed", sport=res.item.sport.key.value, error=str(exc))
                    continue
                counts["games"] += 1

        written = await ctx.writer.upsert_games(games)
        summary.errors.extend(written.errors)
        summary.synced = written.written
        fetch_failed = sum(1 for r in results if not r.ok)
        summary.units_total = len(results) + written.total_batches
        summary.units_failed = fetch_failed + written.failed_batches
        settle_status(summary)
        summary.details.update({
            "mode": mode.value,
            "date_from": days[0].isoformat(),
            "date_to": days[-1].isoformat(),
            "sports": per_sport,
            "failed_batches": written.failed_batches,
        })
        logger.info(
            "espn_games_synced",
            mode=mode.value,
            sports=len(selected),
            games=len(games),
            written=written.written,
            fetch_failed=fetch_failed,
        )
    return summary
