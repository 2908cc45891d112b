"""
Provider construction.

Each provider gets its own ProviderHTTPClient and its own RateGate, so two
upstreams never share a pacing marker. Transports can be injected for tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from shared.config import Settings
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.rate_limiter import RateGate
from shared.utils.redis_manager import RedisManager

from ingest.providers.api_football import ApiFootballProvider
from ingest.providers.espn_golf import EspnGolfProvider
from ingest.providers.espn_scoreboard import EspnScoreboardProvider
from ingest.providers.football_data import FootballDataProvider


@dataclass
class ProviderSet:
    football_data: FootballDataProvider
    api_football: ApiFootballProvider
    espn_golf: EspnGolfProvider
    espn_scoreboard: EspnScoreboardProvider

    def all(self) -> tuple:
        return (self.football_data, self.api_football, self.espn_golf, self.espn_scoreboard)

    async def start(self) -> None:
        for provider in self.all():
            await provider.start()

    async def close(self) -> None:
        for provider in self.all():
            await provider.close()


def _client(
    settings: Settings,
    name: ProviderName,
    base_url: str,
    min_interval_s: float,
    headers: dict[str, str],
    redis: Optional[RedisManager],
    transport: Optional[httpx.AsyncBaseTransport],
) -> ProviderHTTPClient:
    gate = RateGate(
        name.value,
        min_interval_s,
        default_wait_s=settings.rate_limit_default_wait_s,
        redis=redis,
    )
    return ProviderHTTPClient(
        provider_name=name.value,
        base_url=base_url,
        gate=gate,
        headers=headers,
        timeout_s=settings.provider_request_timeout_s,
        max_retries=settings.provider_max_retries,
        rate_limit_retries=settings.rate_limit_max_retries,
        transport=transport,
    )


def build_providers(
    settings: Settings,
    redis: Optional[RedisManager] = None,
    transports: Optional[dict[ProviderName, httpx.AsyncBaseTransport]] = None,
) -> ProviderSet:
    """Wire all providers from settings. Call ``start()`` before use."""
    transports = transports or {}
    return ProviderSet(
        football_data=FootballDataProvider(
            _client(
                settings,
                ProviderName.FOOTBALL_DATA,
                settings.football_data_base_url,
                settings.football_data_min_interval_s,
                FootballDataProvider.headers(settings.football_data_api_key),
                redis,
                transports.get(ProviderName.FOOTBALL_DATA),
            )
        ),
        api_football=ApiFootballProvider(
            _client(
                settings,
                ProviderName.API_FOOTBALL,
                settings.api_football_base_url,
                settings.api_football_min_interval_s,
                ApiFootballProvider.headers(settings.api_football_api_key),
                redis,
                transports.get(ProviderName.API_FOOTBALL),
            )
        ),
        espn_golf=EspnGolfProvider(
            _client(
                settings,
                ProviderName.ESPN_GOLF,
                settings.espn_golf_base_url,
                settings.espn_min_interval_s,
                {},
                redis,
                transports.get(ProviderName.ESPN_GOLF),
            ),
            v3_base_url=settings.espn_golf_v3_base_url,
        ),
        espn_scoreboard=EspnScoreboardProvider(
            _client(
                settings,
                ProviderName.ESPN_SCOREBOARD,
                settings.espn_scoreboard_base_url,
                settings.espn_min_interval_s,
                {},
                redis,
                transports.get(ProviderName.ESPN_SCOREBOARD),
            )
        ),
    )
