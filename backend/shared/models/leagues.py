"""
Competition registry.

Competition codes follow football-data.org; ``api_football_id`` is the
live-snapshot provider's league id for the same competition.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class League:
    code: str
    name: str
    api_football_id: int
    country: str
    is_cup: bool = False


LEAGUES: tuple[League, ...] = (
    League("PL", "Premier League", 39, "England"),
    League("PD", "La Liga", 140, "Spain"),
    League("SA", "Serie A", 135, "Italy"),
    League("BL1", "Bundesliga", 78, "Germany"),
    League("FL1", "Ligue 1", 61, "France"),
    League("PPL", "Primeira Liga", 94, "Portugal"),
    League("DED", "Eredivisie", 88, "Netherlands"),
    League("ELC", "Championship", 40, "England"),
    League("BSA", "Brasileirão Série A", 71, "Brazil"),
    League("CL", "UEFA Champions League", 2, "Europe", is_cup=True),
    League("EL", "UEFA Europa League", 3, "Europe", is_cup=True),
    League("ECL", "UEFA Conference League", 848, "Europe", is_cup=True),
    League("CLI", "Copa Libertadores", 13, "South America", is_cup=True),
    League("CDR", "Copa del Rey", 143, "Spain", is_cup=True),
    League("FAC", "FA Cup", 45, "England", is_cup=True),
    League("CDF", "Coupe de France", 66, "France", is_cup=True),
    League("CIT", "Coppa Italia", 137, "Italy", is_cup=True),
    League("DFB", "DFB-Pokal", 81, "Germany", is_cup=True),
)

BY_CODE: dict[str, League] = {lg.code: lg for lg in LEAGUES}
BY_API_FOOTBALL_ID: dict[int, League] = {lg.api_football_id: lg for lg in LEAGUES}


def league_for_code(code: str) -> Optional[League]:
    return BY_CODE.get(code.upper())


def code_for_api_football_id(league_id: int) -> Optional[str]:
    league = BY_API_FOOTBALL_ID.get(league_id)
    return league.code if league else None
