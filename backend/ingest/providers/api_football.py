"""
API-Football v3 connector: the live-overlay provider.

One call to ``/fixtures?live=all`` returns every live fixture across all
competitions. Its ids share nothing with football-data, so records are
matched to the cache by team name (see overlay.matcher).

API-Football reports quota and auth problems in the body of a 200
response, under ``errors``; those are raised here.
"""
from __future__ import annotations

from typing import Any

from shared.errors import RateLimited, UpstreamUnavailable
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient

from ingest.providers.base import BaseProvider

_THROTTLE_KEYS = ("rateLimit", "requests")


class ApiFootballProvider(BaseProvider):

    def __init__(self, http_client: ProviderHTTPClient) -> None:
        super().__init__(name=ProviderName.API_FOOTBALL, http_client=http_client)

    @staticmethod
    def headers(api_key: str) -> dict[str, str]:
        return {"x-apisports-key": api_key} if api_key else {}

    def _check_body_errors(self, data: dict[str, Any]) -> None:
        errors = data.get("errors")
        if not errors:
            return
        if isinstance(errors, dict):
            if any(k in errors for k in _THROTTLE_KEYS):
                raise RateLimited(self._name.value, retry_after_s=self._http.gate.default_wait_s, attempts=1)
            message = "; ".join(f"{k}: {v}" for k, v in errors.items())
        else:
            message = "; ".join(str(e) for e in errors)
        raise UpstreamUnavailable(self._name.value, message)

    async def live_fixtures(self) -> list[dict[str, Any]]:
        """Every currently live fixture, all competitions."""
        data = await self._get("/fixtures", params={"live": "all"})
        self._check_body_errors(data)
        return list(data.get("response") or [])
