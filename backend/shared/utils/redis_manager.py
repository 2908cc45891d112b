"""
Redis connection manager.

Redis is optional. When configured it carries the cross-process parts of
the engine: request-slot markers for rate gates and the scheduler leader
lock. Nothing else is stored there; the cache lives in the database.
"""
from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
RATE_SLOT_KEY = "fx:rate:{provider}:slot"
LEADER_KEY = "fx:leader:{role}"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


class RedisManager:
    """Manages the async Redis pool and provides typed helpers."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        """Initialize the connection pool."""
        if not self._settings.redis_url:
            raise RuntimeError("FX_REDIS_URL is not configured.")
        self._pool = aioredis.from_url(
            self._settings.redis_url,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        await self._pool.ping()
        logger.info("redis_connected")

    async def disconnect(self) -> None:
        """Graceful shutdown."""
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── Rate gate slots ─────────────────────────────────────────────────
    async def reserve_request_slot(self, provider: str, interval_s: float) -> float:
        """
        Try to claim the next request slot for a provider.

        Returns 0.0 when the slot was claimed, otherwise the seconds until
        the current holder's slot expires.
        """
        key = _fmt(RATE_SLOT_KEY, provider=provider)
        interval_ms = max(int(interval_s * 1000), 1)
        if await self.client.set(key, self._settings.instance_id or "1", nx=True, px=interval_ms):
            return 0.0
        remaining_ms = await self.client.pttl(key)
        if remaining_ms is None or remaining_ms < 0:
            # Key vanished between SET and PTTL; let the caller retry at once.
            return 0.001
        return remaining_ms / 1000.0

    # ── Leader election ─────────────────────────────────────────────────

    # Lua script: atomically renew TTL only if we hold the lock
    _RENEW_LEADER_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    redis.call("expire", KEYS[1], ARGV[2])
    return 1
end
return 0
"""

    # Lua script: atomically delete only if we hold the lock
    _RELEASE_LEADER_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    redis.call("del", KEYS[1])
    return 1
end
return 0
"""

    async def try_acquire_leader(self, role: str, instance_id: str, ttl_s: int = 30) -> bool:
        """Attempt to acquire leadership using SET NX."""
        key = _fmt(LEADER_KEY, role=role)
        return bool(await self.client.set(key, instance_id, nx=True, ex=ttl_s))

    async def renew_leader(self, role: str, instance_id: str, ttl_s: int = 30) -> bool:
        """Atomically renew leadership if still the current leader."""
        key = _fmt(LEADER_KEY, role=role)
        result = await self.client.eval(self._RENEW_LEADER_SCRIPT, 1, key, instance_id, str(ttl_s))
        return bool(result)

    async def release_leader(self, role: str, instance_id: str) -> bool:
        """Atomically release leadership only if we hold it."""
        key = _fmt(LEADER_KEY, role=role)
        result = await self.client.eval(self._RELEASE_LEADER_SCRIPT, 1, key, instance_id)
        return bool(result)
