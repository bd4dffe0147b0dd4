"""Short-TTL in-process cache for upstream responses."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from threading import Lock
from typing import Any, TypeVar

from .clock import Clock
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MemoCache:
    """Key -> value cache with lazy expiry (checked on read only).

    Concurrent callers that miss on the same key both fetch upstream;
    in-flight fetches are not shared.
    """

    def __init__(self, default_ttl_ms: int = 30_000, clock: Clock | None = None) -> None:
        self._default_ttl_ms = default_ttl_ms
        self._clock = clock or Clock()
        self._entries: dict[str, tuple[Any, int, int]] = {}  # key -> (value, stored_at, ttl_ms)
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss or when the entry is stale."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at, ttl_ms = entry
            if self._clock.now_ms() - stored_at < ttl_ms:
                return value
            del self._entries[key]
            return None

    def set(self, key: str, value: Any, ttl_ms: int | None = None) -> None:
        with self._lock:
            self._entries[key] = (
                value,
                self._clock.now_ms(),
                self._default_ttl_ms if ttl_ms is None else ttl_ms,
            )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    async def fetch_with_cache(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl_ms: int | None = None,
        limiter: RateLimiter | None = None,
    ) -> T:
        """Return the memoized value, or acquire a rate-limit slot and fetch.

        Only successful, non-empty results are stored; exceptions propagate.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Memo hit: %s", key)
            return cached

        if limiter is not None:
            await limiter.acquire()
        value = await fetch_fn()
        if value:
            self.set(key, value, ttl_ms)
        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
