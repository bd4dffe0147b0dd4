"""Tests for FetchThroughOrchestrator."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from stockwatch.market.errors import UpstreamUnavailable
from stockwatch.market.fetch_through import FetchThroughOrchestrator
from stockwatch.market.persistent_cache import PersistentCache


@pytest.mark.asyncio
class TestFetchThroughOrchestrator:
    """Integration tests with a real SQLite-backed PersistentCache."""

    async def test_miss_fetches_and_caches(self, persistent_cache, make_points):
        points = make_points(10)
        fetch = AsyncMock(return_value=points)
        orchestrator = FetchThroughOrchestrator(persistent_cache)

        assert await orchestrator.get_or_fetch("AAPL", "5d", fetch) == points
        assert await persistent_cache.read("AAPL", "5d") == points
        fetch.assert_awaited_once()

    async def test_hit_skips_fetch(self, persistent_cache, make_points):
        """Test that a cached series is returned without calling fetch_fn."""
        points = make_points(10)
        await persistent_cache.write("AAPL", "5d", points)
        fetch = AsyncMock()
        orchestrator = FetchThroughOrchestrator(persistent_cache)

        assert await orchestrator.get_or_fetch("AAPL", "5d", fetch) == points
        fetch.assert_not_awaited()

    async def test_empty_result_not_cached(self, persistent_cache):
        """Test that an empty result is returned, not stored, and fetched again next time."""
        fetch = AsyncMock(return_value=[])
        orchestrator = FetchThroughOrchestrator(persistent_cache)

        assert await orchestrator.get_or_fetch("GOOGL", "5d", fetch) == []
        assert await persistent_cache.read("GOOGL", "5d") is None
        assert await orchestrator.get_or_fetch("GOOGL", "5d", fetch) == []

        assert fetch.await_count == 2

    async def test_failure_not_cached(self, persistent_cache, make_points):
        """Test that a failed fetch propagates and the next call retries."""
        points = make_points(4)
        fetch = AsyncMock(side_effect=[UpstreamUnavailable("massive", "AAPL", "timeout"), points])
        orchestrator = FetchThroughOrchestrator(persistent_cache)

        with pytest.raises(UpstreamUnavailable):
            await orchestrator.get_or_fetch("AAPL", "1m", fetch)
        assert await persistent_cache.read("AAPL", "1m") is None

        assert await orchestrator.get_or_fetch("AAPL", "1m", fetch) == points
        assert fetch.await_count == 2

    async def test_expired_entry_refetches(self, persistent_cache, make_points, clock):
        fetch = AsyncMock(return_value=make_points(3))
        orchestrator = FetchThroughOrchestrator(persistent_cache)

        await orchestrator.get_or_fetch("AAPL", "15min", fetch)
        clock.advance(15 * 60_000 + 1)
        await orchestrator.get_or_fetch("AAPL", "15min", fetch)

        assert fetch.await_count == 2

    async def test_degraded_cache_fetches_every_time(self, clock, make_points):
        """Test that without a backend every call goes upstream."""
        cache = PersistentCache("", clock=clock)
        await cache.initialize()
        fetch = AsyncMock(return_value=make_points(3))
        orchestrator = FetchThroughOrchestrator(cache)

        await orchestrator.get_or_fetch("AAPL", "1d", fetch)
        await orchestrator.get_or_fetch("AAPL", "1d", fetch)

        assert fetch.await_count == 2

    async def test_concurrent_misses_not_deduplicated_by_default(self, persistent_cache, make_points):
        """Test that two overlapping misses both call fetch_fn."""
        release = asyncio.Event()
        calls = 0
        points = make_points(3)

        async def fetch():
            nonlocal calls
            calls += 1
            await release.wait()
            return points

        orchestrator = FetchThroughOrchestrator(persistent_cache)
        tasks = [asyncio.create_task(orchestrator.get_or_fetch("AAPL", "1d", fetch)) for _ in range(2)]
        while calls < 2:
            await asyncio.sleep(0.01)
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 2
        assert results == [points, points]

    async def test_dedupe_inflight_shares_one_fetch(self, persistent_cache, make_points):
        """Test the optional in-flight collapse of concurrent misses."""
        release = asyncio.Event()
        calls = 0
        points = make_points(3)

        async def fetch():
            nonlocal calls
            calls += 1
            await release.wait()
            return points

        orchestrator = FetchThroughOrchestrator(persistent_cache, dedupe_inflight=True)
        tasks = [asyncio.create_task(orchestrator.get_or_fetch("AAPL", "1d", fetch)) for _ in range(3)]
        await asyncio.sleep(0.05)
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 1
        assert results == [points, points, points]

    async def test_dedupe_inflight_propagates_failure_to_joiners(self, persistent_cache):
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            raise UpstreamUnavailable("massive", "AAPL")

        orchestrator = FetchThroughOrchestrator(persistent_cache, dedupe_inflight=True)
        tasks = [asyncio.create_task(orchestrator.get_or_fetch("AAPL", "1d", fetch)) for _ in range(2)]
        await asyncio.sleep(0.05)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, UpstreamUnavailable) for r in results)
