"""
ESPN scoreboard registry for the multi-sport games cache.

``sport_type`` is the cache key written to espn_games_cache; ``path`` is the
ESPN site API path under /sports. College scoreboards are restricted to one
division through ``groups``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.models.enums import EspnSportKey


@dataclass(frozen=True)
class EspnSport:
    key: EspnSportKey
    sport_type: str
    name: str
    path: str
    groups: Optional[str] = None


ESPN_SPORTS: tuple[EspnSport, ...] = (
    EspnSport(EspnSportKey.BASKETBALL, "basketball", "NCAA Basketball",
              "basketball/mens-college-basketball", groups="50"),
    EspnSport(EspnSportKey.MLB, "baseball", "MLB Baseball", "baseball/mlb"),
    EspnSport(EspnSportKey.NBA, "basketball_nba", "NBA Basketball", "basketball/nba"),
    EspnSport(EspnSportKey.NFL, "football_nfl", "NFL Football", "football/nfl"),
    EspnSport(EspnSportKey.NHL, "hockey_nhl", "NHL Hockey", "hockey/nhl"),
    EspnSport(EspnSportKey.CFB, "football_college", "College Football",
              "football/college-football", groups="80"),
)

BY_KEY: dict[EspnSportKey, EspnSport] = {s.key: s for s in ESPN_SPORTS}


def espn_sport(key: EspnSportKey | str) -> EspnSport:
    return BY_KEY[EspnSportKey(key)]
