"""
ESPN golf connector (public site API, no key).

Tour slugs map to ESPN's league slugs. Statistics and the v3 leaders
endpoint only exist for the PGA and LPGA tours.
"""
from __future__ import annotations

from typing import Any

from shared.models.enums import GolfTour, ProviderName
from shared.utils.http_client import ProviderHTTPClient

from ingest.providers.base import BaseProvider

ESPN_TOUR_SLUGS: dict[str, str] = {
    GolfTour.PGA.value: "pga",
    GolfTour.EUR.value: "eur",
    GolfTour.LPGA.value: "lpga",
    GolfTour.LIV.value: "liv",
}


class EspnGolfProvider(BaseProvider):

    def __init__(self, http_client: ProviderHTTPClient, v3_base_url: str) -> None:
        super().__init__(name=ProviderName.ESPN_GOLF, http_client=http_client)
        self._v3_base = v3_base_url.rstrip("/")

    @staticmethod
    def _slug(tour: str) -> str:
        return ESPN_TOUR_SLUGS.get(tour, "pga")

    async def scoreboard(self, tour: str) -> dict[str, Any]:
        """Current events plus the season calendar."""
        return await self._get(f"/{self._slug(tour)}/scoreboard")

    async def summary(self, tour: str, event_id: str) -> dict[str, Any]:
        """Full leaderboard for one event."""
        return await self._get(f"/{self._slug(tour)}/summary", params={"event": event_id})

    async def statistics(self, tour: str) -> dict[str, Any]:
        return await self._get(f"/{self._slug(tour)}/statistics")

    async def leaders(self, tour: str) -> dict[str, Any]:
        # Absolute URL; httpx ignores base_url for it.
        return await self._get(f"{self._v3_base}/{self._slug(tour)}/leaders")
