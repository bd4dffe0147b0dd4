"""Time source shared by the rate limiter, caches, and schedulers."""

from __future__ import annotations

import asyncio
import time


class Clock:
    """Wall clock in Unix milliseconds with asyncio suspension primitives.

    Components take a Clock instead of calling time.time() directly so that
    tests can substitute a controllable one.
    """

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    async def sleep(self, duration_ms: int | float) -> None:
        if duration_ms > 0:
            await asyncio.sleep(duration_ms / 1000.0)

    async def sleep_until(self, deadline_ms: int | float) -> None:
        """Suspend the caller until the clock reads at least deadline_ms."""
        await self.sleep(deadline_ms - self.now_ms())
