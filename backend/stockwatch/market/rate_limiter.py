"""Rolling-window rate limiter guarding upstream sources."""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from .clock import Clock

logger = logging.getLogger(__name__)


class RateLimiter:
    """Allows at most ``max_requests`` acquisitions per rolling ``window_ms``.

    Keeps the completion times of the last ``max_requests`` acquisitions.
    When the log is full, the next caller waits until the oldest entry is
    ``window_ms`` old. Requests over the limit are delayed, never dropped.
    The check-and-append runs under one asyncio.Lock, so concurrent callers
    queue in FIFO order and cannot both observe the same free slot.
    """

    def __init__(
        self,
        source: str,
        max_requests: int,
        window_ms: int,
        clock: Clock | None = None,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self.source = source
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock or Clock()
        self._lock = asyncio.Lock()
        self._log: deque[int] = deque(maxlen=max_requests)

    async def acquire(self) -> None:
        """Wait for a free slot in the rolling window."""
        async with self._lock:
            if len(self._log) >= self.max_requests:
                deadline = self._log[0] + self.window_ms
                now = self._clock.now_ms()
                if deadline > now:
                    logger.warning(
                        "Rate limit reached for %s (%d/%d). Waiting %.1fs",
                        self.source,
                        len(self._log),
                        self.max_requests,
                        (deadline - now) / 1000.0,
                    )
                    await self._clock.sleep_until(deadline)
            # Full deque drops the oldest completion
            self._log.append(self._clock.now_ms())

    def reset(self) -> None:
        """Forget all recorded acquisitions."""
        self._log.clear()

    @property
    def count(self) -> int:
        """Acquisitions that completed within the current rolling window."""
        cutoff = self._clock.now_ms() - self.window_ms
        return sum(1 for t in self._log if t > cutoff)


class RateLimiterRegistry:
    """One limiter per upstream source, created on first use."""

    def __init__(
        self,
        limits: dict[str, int],
        window_ms: int,
        clock: Clock | None = None,
        default_limit: int = 5,
    ) -> None:
        self._limits = dict(limits)
        self._window_ms = window_ms
        self._clock = clock or Clock()
        self._default_limit = default_limit
        self._limiters: dict[str, RateLimiter] = {}

    def get(self, source: str) -> RateLimiter:
        limiter = self._limiters.get(source)
        if limiter is None:
            limiter = RateLimiter(
                source=source,
                max_requests=self._limits.get(source, self._default_limit),
                window_ms=self._window_ms,
                clock=self._clock,
            )
            self._limiters[source] = limiter
        return limiter

    async def acquire(self, source: str) -> None:
        await self.get(source).acquire()

    def reset_all(self) -> None:
        for limiter in self._limiters.values():
            limiter.reset()
