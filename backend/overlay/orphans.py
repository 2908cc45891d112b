"""
Orphan reconciler.

A cached row can be left in a live status when the live feed stops
reporting it without ever sending a final whistle. Once such a row is older
than the longest plausible match for its competition and is absent from the
current snapshot, it is forced to FT. The last known score stands.

Only live -> FT transitions are made here.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

from overlay.matcher import FixtureCandidate


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored instant is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OrphanReconciler:

    def __init__(
        self,
        cup_competitions: Iterable[str],
        cup_cutoff_min: int = 120,
        league_cutoff_min: int = 105,
    ) -> None:
        self._cups = frozenset(code.upper() for code in cup_competitions)
        self._cup_cutoff = timedelta(minutes=cup_cutoff_min)
        self._league_cutoff = timedelta(minutes=league_cutoff_min)

    def cutoff_for(self, league_code: str) -> timedelta:
        """Cups allow extra time and penalties; leagues do not."""
        return self._cup_cutoff if league_code.upper() in self._cups else self._league_cutoff

    def is_orphan(self, row: FixtureCandidate, seen_ids: set[int], now: datetime) -> bool:
        if not row.status.is_live or row.id in seen_ids:
            return False
        return as_utc(now) - as_utc(row.kickoff) > self.cutoff_for(row.league_code)

    def select_orphans(
        self,
        rows: Iterable[FixtureCandidate],
        seen_ids: set[int],
        now: datetime,
    ) -> list[FixtureCandidate]:
        return [row for row in rows if self.is_orphan(row, seen_ids, now)]
