"""
Per-upstream request gate.

Each provider client owns one RateGate. The gate enforces a minimum interval
between consecutive requests and works out how long to back off when the
provider answers 429. With a RedisManager attached, the interval is also
enforced across processes through a Redis slot marker.
"""
from __future__ import annotations

import asyncio
import re
import time
from typing import Awaitable, Callable, Mapping, Optional

from shared.utils.logging import get_logger
from shared.utils.metrics import RATE_LIMIT_WAITS
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)

_WAIT_HINT_RE = re.compile(r"wait\s+(\d+)\s+seconds?", re.IGNORECASE)

SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


def parse_wait_hint(body: str, headers: Mapping[str, str] | None = None) -> Optional[float]:
    """
    Extract a backoff hint from a throttling response.

    football-data answers "You reached your request limit. Wait 37 seconds."
    One extra second is added so the retry lands after the window resets.
    Falls back to a numeric Retry-After header. Returns None when neither
    is present.
    """
    match = _WAIT_HINT_RE.search(body or "")
    if match:
        return float(int(match.group(1)) + 1)
    if headers:
        retry_after = headers.get("Retry-After") or headers.get("retry-after")
        if retry_after:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                return None
    return None


class RateGate:
    """
    Minimum-interval gate for one upstream.

    The "last request" marker lives on the instance and is guarded by an
    asyncio.Lock, so concurrent callers queue up instead of racing past
    the interval check.
    """

    def __init__(
        self,
        name: str,
        min_interval_s: float,
        *,
        default_wait_s: float = 60.0,
        redis: RedisManager | None = None,
        clock: ClockFn = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.name = name
        self.min_interval_s = max(min_interval_s, 0.0)
        self.default_wait_s = default_wait_s
        self._redis = redis
        self._clock = clock
        self._sleep = sleep
        self._last_request: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Block until this upstream may be called again. Returns seconds waited."""
        waited = 0.0
        async with self._lock:
            if self._last_request is not None:
                remaining = self._last_request + self.min_interval_s - self._clock()
                if remaining > 0:
                    RATE_LIMIT_WAITS.labels(provider=self.name, reason="interval").inc()
                    await self._sleep(remaining)
                    waited += remaining
            if self._redis is not None and self.min_interval_s > 0:
                waited += await self._wait_for_shared_slot()
            self._last_request = self._clock()
        return waited

    async def _wait_for_shared_slot(self) -> float:
        waited = 0.0
        while True:
            remaining = await self._redis.reserve_request_slot(self.name, self.min_interval_s)
            if remaining <= 0:
                return waited
            RATE_LIMIT_WAITS.labels(provider=self.name, reason="shared_slot").inc()
            await self._sleep(remaining)
            waited += remaining

    def backoff_for(self, body: str, headers: Mapping[str, str] | None = None) -> float:
        """Seconds to wait after a 429, from the provider's hint or the default."""
        hint = parse_wait_hint(body, headers)
        return self.default_wait_s if hint is None else hint

    async def backoff(self, seconds: float, attempt: int) -> None:
        """Sleep out a throttling window and restart the interval from its end."""
        RATE_LIMIT_WAITS.labels(provider=self.name, reason="throttled").inc()
        logger.warning(
            "provider_rate_limited",
            provider=self.name,
            wait_s=seconds,
            attempt=attempt,
        )
        async with self._lock:
            await self._sleep(seconds)
            self._last_request = self._clock()
