"""
Cross-provider matcher.

The live snapshot carries no key shared with the cache, so a live entry is
located by league, reference day and folded team names. The matcher never
guesses: zero or several accepted candidates both mean "no write".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional

from shared.models.domain import LiveUpdate
from shared.models.enums import FixtureStatus

from overlay.names import fold_team_name, sides_match


@dataclass(frozen=True)
class FixtureCandidate:
    """The slice of a cached fixture row needed for matching and reconciliation."""
    id: int
    league_code: str
    match_date: date
    kickoff: datetime
    status: FixtureStatus
    home_name: str
    away_name: str


class MatchStatus(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    AMBIGUOUS = "ambiguous"


@dataclass
class MatchResult:
    status: MatchStatus
    candidate: Optional[FixtureCandidate] = None
    contenders: list[int] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.status is MatchStatus.MATCHED


class CrossProviderMatcher:
    """Finds the single cached fixture a live update refers to."""

    def match(
        self,
        update: LiveUpdate,
        candidates: Iterable[FixtureCandidate],
        match_date: date,
    ) -> MatchResult:
        home_key = fold_team_name(update.home_name)
        away_key = fold_team_name(update.away_name)

        accepted = [
            c for c in candidates
            if c.league_code == update.league_code
            and c.match_date == match_date
            and sides_match(home_key, fold_team_name(c.home_name))
            and sides_match(away_key, fold_team_name(c.away_name))
        ]
        if len(accepted) == 1:
            return MatchResult(status=MatchStatus.MATCHED, candidate=accepted[0])
        if not accepted:
            return MatchResult(status=MatchStatus.UNMATCHED)
        return MatchResult(status=MatchStatus.AMBIGUOUS, contenders=[c.id for c in accepted])
