"""Scheduled refresh of live quotes for a tracked symbol set."""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable

from .clock import Clock
from .downsampler import SeriesDownsampler
from .models import QuoteSnapshot, RawTick
from .quote_book import QuoteBook
from .rate_limiter import RateLimiter
from .scheduler import PeriodicTask, TaskState

logger = logging.getLogger(__name__)

QuoteFetchFn = Callable[[str], Awaitable[QuoteSnapshot]]

# Upper bound of the simulated volume added per successful refresh
VOLUME_STEP_MAX = 1_000_000


class QuoteRefreshLoop:
    """Refreshes quotes for the tracked symbols on a fixed interval.

    Symbols are processed sequentially in list order: acquire a rate-limit
    slot, call the upstream, apply the result to the QuoteBook, then wait a
    fixed delay before the next symbol. One symbol failing is logged and
    leaves its quote at the last known value; the others still update.

    After stop(), a call that was already in flight is allowed to finish
    but its result is discarded.

    Lifecycle:
        loop = QuoteRefreshLoop(fetch_quote, limiter, book)
        await loop.start(["AAPL", "GOOGL"])
        loop.add_symbol("TSLA")
        await loop.stop()
    """

    def __init__(
        self,
        fetch_quote: QuoteFetchFn,
        limiter: RateLimiter,
        book: QuoteBook,
        interval: float = 15.0,
        inter_call_delay_ms: int = 250,
        clock: Clock | None = None,
        downsampler: SeriesDownsampler | None = None,
    ) -> None:
        self._fetch_quote = fetch_quote
        self._limiter = limiter
        self._book = book
        self._interval = interval
        self._inter_call_delay_ms = inter_call_delay_ms
        self._clock = clock or Clock()
        self._downsampler = downsampler
        self._symbols: list[str] = []
        self._task: PeriodicTask | None = None
        self._stopped = False

    @property
    def state(self) -> TaskState:
        if self._stopped:
            return TaskState.STOPPED
        return self._task.state if self._task else TaskState.IDLE

    async def start(self, symbols: list[str]) -> None:
        """Begin refreshing. The first refresh tick runs immediately."""
        if self.state is not TaskState.IDLE:
            raise RuntimeError(f"Refresh loop cannot start from state {self.state.value}")
        self._symbols = []
        for symbol in symbols:
            self.add_symbol(symbol)
        self._task = PeriodicTask("quote-refresh", self._cycle, interval=self._interval)
        self._task.start()
        logger.info("Quote refresh loop started: %d symbols, %.1fs interval", len(self._symbols), self._interval)

    async def stop(self) -> None:
        """Safe to call multiple times. After stop(), no quote is applied again."""
        self._stopped = True
        if self._task is not None:
            await self._task.stop()

    def add_symbol(self, symbol: str) -> None:
        """Track a symbol. No-op if already present. Picked up on the next tick."""
        symbol = symbol.upper().strip()
        if symbol and symbol not in self._symbols:
            self._symbols.append(symbol)

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    async def refresh_once(self) -> dict[str, Exception]:
        """Run one refresh tick. Returns the per-symbol failures."""
        failures: dict[str, Exception] = {}
        updated = 0
        for index, symbol in enumerate(list(self._symbols)):
            if index > 0:
                await self._clock.sleep(self._inter_call_delay_ms)
            if self._stopped:
                break

            try:
                await self._limiter.acquire()
                snapshot = await self._fetch_quote(symbol)
            except Exception as e:
                logger.error("Quote refresh failed for %s: %s", symbol, e)
                failures[symbol] = e
                continue

            if self._stopped:
                logger.debug("Discarding quote for %s: refresh loop stopped", symbol)
                break

            now = self._clock.now_ms()
            quote = self._book.apply(
                symbol,
                snapshot,
                timestamp=now,
                volume_increment=random.randint(0, VOLUME_STEP_MAX),
            )
            if self._downsampler is not None:
                self._downsampler.ingest(RawTick(symbol=symbol, timestamp=now, price=quote.price))
            updated += 1

        logger.debug("Quote refresh: updated %d/%d symbols", updated, len(self._symbols))
        return failures

    async def _cycle(self) -> None:
        await self.refresh_once()
