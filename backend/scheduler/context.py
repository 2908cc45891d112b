"""
Shared wiring for sync passes.

A SyncContext bundles what every pass needs: settings, the database,
providers and the cache reader/writer/run logger. The API lifespan and the
scheduler process each build one at startup.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Callable, Optional

import httpx

from shared.config import Settings
from shared.models.domain import utcnow
from shared.models.enums import ProviderName
from shared.utils.database import DatabaseManager
from shared.utils.redis_manager import RedisManager

from ingest.normalization.normalizer import reference_date
from ingest.providers.registry import ProviderSet, build_providers
from store.reader import CacheReader
from store.run_log import RunLogger
from store.upsert import CacheWriter


@dataclass
class SyncContext:
    settings: Settings
    db: DatabaseManager
    providers: ProviderSet
    writer: CacheWriter
    reader: CacheReader
    run_logger: RunLogger
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    clock: Callable[[], datetime] = field(default=utcnow)

    @classmethod
    def build(
        cls,
        settings: Settings,
        db: DatabaseManager,
        providers: ProviderSet,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ) -> "SyncContext":
        return cls(
            settings=settings,
            db=db,
            providers=providers,
            writer=CacheWriter(db, batch_size=settings.upsert_batch_size, clock=clock),
            reader=CacheReader(db, freshness_window_s=settings.freshness_window_s, clock=clock),
            run_logger=RunLogger(db),
            sleep=sleep,
            clock=clock,
        )

    def today(self) -> date:
        """Current day in the reference timezone."""
        return reference_date(self.clock(), self.settings.reference_timezone)


@dataclass
class Runtime:
    """A connected SyncContext plus the resources the process must release."""
    ctx: SyncContext
    redis: Optional[RedisManager] = None

    async def close(self) -> None:
        await self.ctx.providers.close()
        await self.ctx.db.disconnect()
        if self.redis is not None:
            await self.redis.disconnect()


async def open_runtime(
    settings: Settings,
    transports: Optional[dict[ProviderName, httpx.AsyncBaseTransport]] = None,
) -> Runtime:
    """Connect the database (creating tables), optional Redis and providers."""
    db = DatabaseManager(settings)
    await db.connect()
    await db.create_schema()

    redis: Optional[RedisManager] = None
    if settings.redis_url:
        redis = RedisManager(settings)
        try:
            await redis.connect()
        except Exception:
            await db.disconnect()
            raise

    providers = build_providers(settings, redis=redis, transports=transports)
    await providers.start()
    return Runtime(ctx=SyncContext.build(settings, db, providers), redis=redis)
