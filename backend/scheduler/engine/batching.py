"""
Batch runner for sync passes.

Splits a work list into fixed-size chunks. Items in a chunk run
concurrently; chunks run strictly one after another with a pause in
between. A failing item is recorded on its result and never aborts the
chunk or the run.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchItemResult(Generic[T, R]):
    item: T
    value: Optional[R] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_batched(
    items: Sequence[T],
    batch_size: int,
    worker: Callable[[T], Awaitable[R]],
    inter_batch_delay_s: float = 0.0,
    *,
    label: str = "batch",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[BatchItemResult[T, R]]:
    """
    Run ``worker`` over ``items`` in chunks of ``batch_size``.

    Returns one result per item, in input order.
    """

    async def _guarded(item: T) -> BatchItemResult[T, R]:
        try:
            return BatchItemResult(item=item, value=await worker(item))
        except Exception as exc:
            logger.warning("batch_item_failed", label=label, item=str(item), error=str(exc))
            return BatchItemResult(item=item, error=f"{item}: {exc}")

    results: list[BatchItemResult[T, R]] = []
    chunks = chunked(items, batch_size)
    for index, chunk in enumerate(chunks):
        results.extend(await asyncio.gather(*(_guarded(item) for item in chunk)))
        if inter_batch_delay_s > 0 and index < len(chunks) - 1:
            await sleep(inter_batch_delay_s)
    failed = sum(1 for r in results if not r.ok)
    logger.debug("batch_run_complete", label=label, items=len(results), failed=failed, batches=len(chunks))
    return results
