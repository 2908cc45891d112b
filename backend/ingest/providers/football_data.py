"""
Football-Data.org v4 connector: the primary schedule/results provider.
Uses X-Auth-Token. Free tier allows 10 requests/min, hence the 6.5s gate.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient

from ingest.providers.base import BaseProvider


class FootballDataProvider(BaseProvider):
    """football-data.org v4 (soccer only)."""

    def __init__(self, http_client: ProviderHTTPClient) -> None:
        super().__init__(name=ProviderName.FOOTBALL_DATA, http_client=http_client)

    @staticmethod
    def headers(api_key: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        if api_key:
            headers["X-Auth-Token"] = api_key
        return headers

    async def competition_matches(self, code: str, date_from: date, date_to: date) -> list[dict[str, Any]]:
        """GET /competitions/{code}/matches for an inclusive date window."""
        data = await self._get(
            f"/competitions/{code}/matches",
            params={"dateFrom": date_from.isoformat(), "dateTo": date_to.isoformat()},
        )
        return list(data.get("matches") or [])

    async def matches_between(
        self, date_from: date, date_to: date, competitions: Iterable[str]
    ) -> list[dict[str, Any]]:
        """GET /matches across several competitions."""
        data = await self._get(
            "/matches",
            params={
                "dateFrom": date_from.isoformat(),
                "dateTo": date_to.isoformat(),
                "competitions": ",".join(competitions),
            },
        )
        return list(data.get("matches") or [])

    async def match(self, match_id: int) -> dict[str, Any]:
        return await self._get(f"/matches/{match_id}")

    async def head_to_head(self, match_id: int, limit: int = 10) -> dict[str, Any]:
        return await self._get(f"/matches/{match_id}/head2head", params={"limit": limit})

    async def standings(self, code: str) -> dict[str, Any]:
        return await self._get(f"/competitions/{code}/standings")
