"""Domain enumerations for the fixture sync engine."""
from __future__ import annotations

from enum import Enum


class Sport(str, Enum):
    SOCCER = "soccer"
    GOLF = "golf"
    # run-log tag for the multi-sport ESPN games pass
    ESPN = "espn"


class FixtureStatus(str, Enum):
    """Canonical fixture status; every provider vocabulary maps into this set."""
    NOT_STARTED = "NS"
    FIRST_HALF = "1H"
    HALF_TIME = "HT"
    SECOND_HALF = "2H"
    EXTRA_TIME = "ET"
    PENALTIES = "PEN"
    FINISHED = "FT"
    POSTPONED = "PST"
    CANCELLED = "CAN"
    SUSPENDED = "SUSP"
    ABANDONED = "ABD"
    INTERRUPTED = "INT"
    LIVE = "LIVE"

    @property
    def is_live(self) -> bool:
        return self in _LIVE_STATUSES

    @property
    def has_started(self) -> bool:
        """Whether a score is meaningful for this status."""
        return self not in (
            FixtureStatus.NOT_STARTED,
            FixtureStatus.POSTPONED,
            FixtureStatus.CANCELLED,
        )

    @property
    def is_terminal(self) -> bool:
        return self in (
            FixtureStatus.FINISHED,
            FixtureStatus.CANCELLED,
            FixtureStatus.ABANDONED,
        )


_LIVE_STATUSES = frozenset({
    FixtureStatus.FIRST_HALF,
    FixtureStatus.HALF_TIME,
    FixtureStatus.SECOND_HALF,
    FixtureStatus.EXTRA_TIME,
    FixtureStatus.PENALTIES,
    FixtureStatus.LIVE,
})

LIVE_STATUS_VALUES: tuple[str, ...] = tuple(sorted(s.value for s in _LIVE_STATUSES))


class GameStatus(str, Enum):
    """Status of a game in the ESPN multi-sport cache."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"
    POSTPONED = "postponed"
    DELAYED = "delayed"

    @property
    def has_started(self) -> bool:
        return self not in (GameStatus.SCHEDULED, GameStatus.POSTPONED)


class EspnSportKey(str, Enum):
    BASKETBALL = "basketball"
    MLB = "mlb"
    NBA = "nba"
    NFL = "nfl"
    NHL = "nhl"
    CFB = "cfb"


class GolfEventStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"


class GolfTour(str, Enum):
    PGA = "pga"
    EUR = "eur"
    LPGA = "lpga"
    LIV = "liv"

    @property
    def has_stats(self) -> bool:
        """ESPN publishes statistics/leaders only for these tours."""
        return self in (GolfTour.PGA, GolfTour.LPGA)


class GolfDataType(str, Enum):
    RANKINGS = "rankings"
    LEADERS = "leaders"
    SCHEDULE = "schedule"


class ProviderName(str, Enum):
    FOOTBALL_DATA = "football_data"
    API_FOOTBALL = "api_football"
    ESPN_GOLF = "espn_golf"
    ESPN_SCOREBOARD = "espn_scoreboard"


class SyncType(str, Enum):
    FIXTURES = "fixtures"
    BACKFILL = "backfill"
    LIVE = "live"
    STANDINGS = "standings"
    MATCH_DETAILS = "match_details"
    GOLF = "golf"
    ESPN_GAMES = "espn_games"


class SyncRunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class GolfSyncMode(str, Enum):
    LIVE = "live"
    FULL = "full"


class EspnSyncMode(str, Enum):
    FULL = "full"
    LIVE = "live"
    DATE = "date"
