from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from shared.constants import DOWNLOAD_CONCURRENCY, LOG_MEMORY_EVERY_TILES, STREAM_MAX_QUEUE
from shared.diagnostics import log_memory_usage

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

    from geo.quadkey import QuadKey

logger = logging.getLogger(__name__)

_SENTINEL = object()


class TileFetcher:
    """Fetch many tiles through ``get_tile`` with bounded parallelism."""

    def __init__(
        self,
        get_tile: Callable[[QuadKey], Awaitable[bytes | None]],
        *,
        concurrency: int = DOWNLOAD_CONCURRENCY,
    ):
        self._get = get_tile
        self._sem = asyncio.Semaphore(concurrency)
        self._fetched = 0

    async def _fetch_one(self, key: QuadKey) -> bytes | None:
        async with self._sem:
            data = await self._get(key)
        self._fetched += 1
        if self._fetched % LOG_MEMORY_EVERY_TILES == 0:
            log_memory_usage(f'after {self._fetched} tiles')
        return data

    async def fetch_many(
        self,
        keys: Iterable[QuadKey],
        *,
        on_progress: Callable[[int], Awaitable[None]] | None = None,
    ) -> dict[QuadKey, bytes | None]:
        """Fetch tiles concurrently.

        The first failure cancels the remaining workers and propagates once
        they have all stopped.
        """
        out: dict[QuadKey, bytes | None] = {}

        async def _worker(key: QuadKey) -> None:
            out[key] = await self._fetch_one(key)
            if on_progress is not None:
                await on_progress(1)

        # Duplicate keys are fetched once
        tasks = [asyncio.create_task(_worker(k)) for k in dict.fromkeys(keys)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return out


async def stream_tiles(
    keys: Iterable[QuadKey],
    get_tile: Callable[[QuadKey], Awaitable[bytes | None]],
    *,
    max_queue: int = STREAM_MAX_QUEUE,
    concurrency: int = DOWNLOAD_CONCURRENCY,
) -> AsyncIterator[tuple[QuadKey, bytes | None]]:
    """Yield tiles as they arrive, using a bounded queue to limit memory."""
    fetcher = TileFetcher(get_tile, concurrency=concurrency)
    queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_queue)

    async def _produce() -> None:
        async def _one(key: QuadKey) -> None:
            await queue.put((key, await fetcher._fetch_one(key)))

        tasks = [asyncio.create_task(_one(k)) for k in keys]
        try:
            await asyncio.gather(*tasks)
        except Exception as e:
            for t in tasks:
                t.cancel()
            await queue.put(e)
        else:
            await queue.put(_SENTINEL)

    prod_task = asyncio.create_task(_produce())
    try:
        while True:
            item = await queue.get()
            if item is _SENTINEL:
                break
            if isinstance(item, Exception):
                raise item
            yield item  # type: ignore[misc]
    finally:
        prod_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await prod_task
