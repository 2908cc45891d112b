"""
ESPN scoreboard connector for team sports (public site API, no key).

One request returns every game for a sport on a single calendar day.
"""
from __future__ import annotations

from datetime import date
from typing import Any

from shared.models.enums import ProviderName
from shared.models.espn_sports import EspnSport
from shared.utils.http_client import ProviderHTTPClient

from ingest.providers.base import BaseProvider

SCOREBOARD_LIMIT = 500


class EspnScoreboardProvider(BaseProvider):

    def __init__(self, http_client: ProviderHTTPClient) -> None:
        super().__init__(name=ProviderName.ESPN_SCOREBOARD, http_client=http_client)

    async def scoreboard(self, sport: EspnSport, day: date) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": SCOREBOARD_LIMIT, "dates": day.strftime("%Y%m%d")}
        if sport.groups:
            params["groups"] = sport.groups
        data = await self._get(f"/{sport.path}/scoreboard", params=params)
        return data.get("events") or []
