"""
Async HTTP client wrapper for provider requests.
Every request passes the client's RateGate; includes 429 backoff,
transient-error retries and metrics collection.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx

from shared.errors import RateLimited, UpstreamUnavailable
from shared.utils.logging import get_logger
from shared.utils.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS
from shared.utils.rate_limiter import RateGate

logger = get_logger(__name__)


class ProviderHTTPClient:
    """
    Async HTTP client tailored for sports data provider APIs.
    Handles pacing, throttling, timeouts and retries, and records metrics per request.
    """

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        gate: RateGate,
        headers: dict[str, str] | None = None,
        timeout_s: float = 10.0,
        max_retries: int = 2,
        rate_limit_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._provider = provider_name
        self._base_url = base_url.rstrip("/")
        self._gate = gate
        self._timeout = timeout_s
        self._max_retries = max_retries
        self._rate_limit_retries = rate_limit_retries
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def gate(self) -> RateGate:
        return self._gate

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._default_headers,
            timeout=httpx.Timeout(self._timeout, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a path and decode the JSON body."""
        resp = await self.get(path, params=params)
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamUnavailable(self._provider, f"invalid JSON from {path}") from exc

    async def get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """
        Perform a gated GET request.

        429 responses wait out the provider's hint and retry up to
        ``rate_limit_retries`` times. Timeouts, transport errors and 5xx
        retry with linear backoff up to ``max_retries`` times.

        Raises:
            RateLimited: Still throttled after the allowed waits.
            UpstreamUnavailable: Any other failure.
        """
        if not self._client:
            raise RuntimeError("ProviderHTTPClient not started. Call start() first.")

        throttled = 0
        failures = 0
        while True:
            await self._gate.wait()
            start_time = time.perf_counter()
            status = "error"
            try:
                resp = await self._client.get(path, params=params)
                status = str(resp.status_code)
            except httpx.TimeoutException as exc:
                status = "timeout"
                failures += 1
                logger.warning("provider_timeout", provider=self._provider, path=path, attempt=failures)
                if failures > self._max_retries:
                    raise UpstreamUnavailable(self._provider, f"timeout on {path}") from exc
                await asyncio.sleep(1.0 * failures)
                continue
            except httpx.TransportError as exc:
                failures += 1
                logger.warning(
                    "provider_transport_error",
                    provider=self._provider,
                    path=path,
                    error=str(exc),
                    attempt=failures,
                )
                if failures > self._max_retries:
                    raise UpstreamUnavailable(self._provider, f"{type(exc).__name__} on {path}") from exc
                await asyncio.sleep(1.0 * failures)
                continue
            finally:
                PROVIDER_LATENCY.labels(provider=self._provider).observe(time.perf_counter() - start_time)
                PROVIDER_REQUESTS.labels(provider=self._provider, status=status).inc()

            if resp.status_code == 429:
                wait_s = self._gate.backoff_for(resp.text, resp.headers)
                throttled += 1
                if throttled > self._rate_limit_retries:
                    raise RateLimited(self._provider, retry_after_s=wait_s, attempts=throttled)
                await self._gate.backoff(wait_s, attempt=throttled)
                continue

            if resp.status_code >= 500:
                failures += 1
                logger.warning(
                    "provider_server_error",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                    attempt=failures,
                )
                if failures > self._max_retries:
                    raise UpstreamUnavailable(self._provider, path, status_code=resp.status_code)
                await asyncio.sleep(1.0 * failures)
                continue

            if resp.status_code >= 400:
                logger.error(
                    "provider_http_error",
                    provider=self._provider,
                    path=path,
                    status=resp.status_code,
                )
                raise UpstreamUnavailable(self._provider, path, status_code=resp.status_code)

            logger.debug(
                "provider_request_success",
                provider=self._provider,
                path=path,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return resp
