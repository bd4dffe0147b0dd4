"""Fixtures for market data tests."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from stockwatch.market.interface import QuoteProvider
from stockwatch.market.models import PricePoint, QuoteSnapshot
from stockwatch.market.persistent_cache import PersistentCache


@pytest_asyncio.fixture
async def persistent_cache(tmp_path, clock):
    """PersistentCache on a throwaway SQLite file, driven by the fake clock."""
    cache = PersistentCache(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}", clock=clock)
    await cache.initialize()
    yield cache
    await cache.close()


@pytest.fixture
def make_points(clock):
    """Build an ascending series of n points ending at the current fake time."""

    def _make(n: int, step_ms: int = 60_000, base: float = 100.0) -> list[PricePoint]:
        end = clock.now_ms()
        return [PricePoint(timestamp=end - (n - 1 - i) * step_ms, price=base + i) for i in range(n)]

    return _make


class FakeProvider(QuoteProvider):
    """Provider whose upstream calls are AsyncMocks. Quotes are a flat 101.0."""

    name = "fake"
    supports_history = True

    def __init__(self) -> None:
        self.fetch_quote = AsyncMock(side_effect=self._snapshot)
        self.fetch_history = AsyncMock(return_value=[])
        self.close = AsyncMock()

    async def fetch_quote(self, symbol: str) -> QuoteSnapshot:
        return await self._snapshot(symbol)

    async def _snapshot(self, symbol: str) -> QuoteSnapshot:
        return QuoteSnapshot(
            price=101.0, change=1.0, change_percent=1.0, previous_close=100.0, day_high=102.0, day_low=99.0
        )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
