"""
Per-provider status vocabularies.

Each provider gets one explicit table into FixtureStatus (or
GolfEventStatus). Adding a provider means adding a table here, not
touching call sites.
"""
from __future__ import annotations

from typing import Mapping, Optional

from shared.models.enums import FixtureStatus, GameStatus, GolfEventStatus

FOOTBALL_DATA_STATUS: Mapping[str, FixtureStatus] = {
    "SCHEDULED": FixtureStatus.NOT_STARTED,
    "TIMED": FixtureStatus.NOT_STARTED,
    "IN_PLAY": FixtureStatus.LIVE,
    "LIVE": FixtureStatus.LIVE,
    "PAUSED": FixtureStatus.HALF_TIME,
    "EXTRA_TIME": FixtureStatus.EXTRA_TIME,
    "PENALTY_SHOOTOUT": FixtureStatus.PENALTIES,
    "FINISHED": FixtureStatus.FINISHED,
    "AWARDED": FixtureStatus.FINISHED,
    "POSTPONED": FixtureStatus.POSTPONED,
    "SUSPENDED": FixtureStatus.SUSPENDED,
    "CANCELLED": FixtureStatus.CANCELLED,
}

API_FOOTBALL_STATUS: Mapping[str, FixtureStatus] = {
    "TBD": FixtureStatus.NOT_STARTED,
    "NS": FixtureStatus.NOT_STARTED,
    "1H": FixtureStatus.FIRST_HALF,
    "HT": FixtureStatus.HALF_TIME,
    "2H": FixtureStatus.SECOND_HALF,
    "ET": FixtureStatus.EXTRA_TIME,
    "BT": FixtureStatus.HALF_TIME,
    "P": FixtureStatus.PENALTIES,
    "FT": FixtureStatus.FINISHED,
    "AET": FixtureStatus.FINISHED,
    "PEN": FixtureStatus.FINISHED,
    "AWD": FixtureStatus.FINISHED,
    "WO": FixtureStatus.FINISHED,
    "SUSP": FixtureStatus.SUSPENDED,
    "INT": FixtureStatus.INTERRUPTED,
    "PST": FixtureStatus.POSTPONED,
    "CANC": FixtureStatus.CANCELLED,
    "ABD": FixtureStatus.ABANDONED,
    "LIVE": FixtureStatus.LIVE,
}

ESPN_GOLF_STATUS: Mapping[str, GolfEventStatus] = {
    "STATUS_SCHEDULED": GolfEventStatus.SCHEDULED,
    "STATUS_IN_PROGRESS": GolfEventStatus.IN_PROGRESS,
    "STATUS_PLAY_COMPLETE": GolfEventStatus.IN_PROGRESS,
    "STATUS_SUSPENDED": GolfEventStatus.IN_PROGRESS,
    "STATUS_FINAL": GolfEventStatus.FINAL,
}

ESPN_GAME_STATUS: Mapping[str, GameStatus] = {
    "STATUS_SCHEDULED": GameStatus.SCHEDULED,
    "STATUS_IN_PROGRESS": GameStatus.IN_PROGRESS,
    "STATUS_HALFTIME": GameStatus.IN_PROGRESS,
    "STATUS_END_PERIOD": GameStatus.IN_PROGRESS,
    "STATUS_FINAL": GameStatus.FINAL,
    "STATUS_FINAL_OT": GameStatus.FINAL,
    "STATUS_CANCELED": GameStatus.FINAL,
    "STATUS_POSTPONED": GameStatus.POSTPONED,
    "STATUS_DELAYED": GameStatus.DELAYED,
    "STATUS_RAIN_DELAY": GameStatus.DELAYED,
    "STATUS_SUSPENDED": GameStatus.DELAYED,
}

ESPN_GAME_STATE: Mapping[str, GameStatus] = {
    "pre": GameStatus.SCHEDULED,
    "in": GameStatus.IN_PROGRESS,
    "post": GameStatus.FINAL,
}


def map_football_data_status(raw: Optional[str], minute: Optional[int] = None) -> Optional[FixtureStatus]:
    """
    football-data reports IN_PLAY for both halves; the minute, when the
    feed carries one, decides which.

    Returns None for a code outside the table.
    """
    status = FOOTBALL_DATA_STATUS.get((raw or "").strip().upper())
    if status is None:
        return None
    if status is FixtureStatus.LIVE and minute is not None:
        return FixtureStatus.FIRST_HALF if minute <= 45 else FixtureStatus.SECOND_HALF
    return status


def map_api_football_status(raw: Optional[str]) -> FixtureStatus:
    return API_FOOTBALL_STATUS.get((raw or "").strip().upper(), FixtureStatus.LIVE)


def map_espn_golf_status(raw: Optional[str]) -> GolfEventStatus:
    return ESPN_GOLF_STATUS.get((raw or "").strip().upper(), GolfEventStatus.SCHEDULED)


def map_espn_game_status(name: Optional[str], state: Optional[str] = None) -> Optional[GameStatus]:
    """
    The status name is checked first; the coarse pre/in/post state covers
    names ESPN adds later. Returns None when neither is recognised.
    """
    status = ESPN_GAME_STATUS.get((name or "").strip().upper())
    if status is not None:
        return status
    return ESPN_GAME_STATE.get((state or "").strip().lower())
