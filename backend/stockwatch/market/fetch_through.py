"""Fetch-through composition of the persistent cache and an upstream fetch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .models import PricePoint
from .periods import TimePeriod
from .persistent_cache import PersistentCache

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[list[PricePoint]]]


class FetchThroughOrchestrator:
    """Cache hit returns immediately; a miss calls fetch_fn and stores non-empty results.

    Empty results and fetch errors are never cached, so the next call for
    the same key fetches again. Fetch errors propagate to the caller.

    With dedupe_inflight=True, concurrent misses on the same (symbol, period)
    share one fetch_fn call. Off by default: each miss fetches on its own.
    """

    def __init__(self, cache: PersistentCache, dedupe_inflight: bool = False) -> None:
        self._cache = cache
        self._dedupe = dedupe_inflight
        self._inflight: dict[tuple[str, TimePeriod], asyncio.Future] = {}

    async def get_or_fetch(
        self,
        symbol: str,
        period: TimePeriod | str,
        fetch_fn: FetchFn,
    ) -> list[PricePoint]:
        period = TimePeriod.parse(period)
        cached = await self._cache.read(symbol, period)
        if cached:
            return cached

        if not self._dedupe:
            return await self._fetch_and_store(symbol, period, fetch_fn)

        key = (symbol, period)
        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("Joining in-flight fetch for %s (%s)", symbol, period.value)
            return list(await asyncio.shield(pending))

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            points = await self._fetch_and_store(symbol, period, fetch_fn)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unjoined failure does not warn at GC
            future.exception()
            raise
        else:
            future.set_result(points)
            return points
        finally:
            self._inflight.pop(key, None)

    async def _fetch_and_store(self, symbol: str, period: TimePeriod, fetch_fn: FetchFn) -> list[PricePoint]:
        logger.debug("Fetching fresh data for %s (%s)", symbol, period.value)
        try:
            points = await fetch_fn()
        except Exception as e:
            logger.error("Fetch failed for %s (%s): %s", symbol, period.value, e)
            raise

        if points:
            await self._cache.write(symbol, period, points)
        else:
            logger.warning("No data returned for %s (%s)", symbol, period.value)
        return points
