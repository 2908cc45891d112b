"""
Base class for upstream data providers.

A provider is a thin fetch layer over a ProviderHTTPClient: it knows the
provider's paths and response envelope, and returns provider-shaped records.
Mapping into domain models happens in ingest.normalization.
"""
from __future__ import annotations

from typing import Any

from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class BaseProvider:
    """HTTP lifecycle shared by all provider connectors."""

    def __init__(self, name: ProviderName, http_client: ProviderHTTPClient) -> None:
        self._name = name
        self._http = http_client

    @property
    def name(self) -> ProviderName:
        return self._name

    @property
    def http(self) -> ProviderHTTPClient:
        return self._http

    async def start(self) -> None:
        await self._http.start()
        logger.info("provider_started", provider=self._name.value)

    async def close(self) -> None:
        await self._http.close()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._http.get_json(path, params=params)
