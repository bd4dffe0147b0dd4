"""Pytest configuration and fixtures."""

import pytest

from stockwatch.market.clock import Clock

# 2024-02-10 16:00:00 UTC
START_MS = 1_707_580_800_000


class FakeClock(Clock):
    """Deterministic clock. Sleeping advances time instantly."""

    def __init__(self, start_ms: int = START_MS) -> None:
        self._now = start_ms
        self.sleeps: list[float] = []

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> None:
        self._now += ms

    def set(self, ms: int) -> None:
        self._now = ms

    async def sleep(self, duration_ms: int | float) -> None:
        self.sleeps.append(duration_ms)
        if duration_ms > 0:
            self._now += int(duration_ms)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
