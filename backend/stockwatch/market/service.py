"""Process-wide market data service.

Owns the shared state (rate limiters, memo cache, persistent cache, quote
book, downsampler) and exposes the consumer-facing operations. Create one
per process and pass it to whatever needs market data:

    service = MarketDataService()
    await service.initialize()
    await service.start_refresh_loop(["AAPL", "GOOGL"])
    quote = await service.get_quote("AAPL")
    points = await service.get_or_fetch("AAPL", "5d")
    ...
    await service.shutdown()
"""

from __future__ import annotations

import logging

from .clock import Clock
from .downsampler import SeriesDownsampler
from .errors import AllUnitsFailed, MarketDataError
from .factory import create_quote_provider
from .fetch_through import FetchThroughOrchestrator
from .interface import QuoteProvider
from .memo_cache import MemoCache
from .models import PricePoint, Quote, QuoteSnapshot, RawTick
from .periods import ORDERED_PERIODS, PERIOD_CONFIGS, TimePeriod
from .persistent_cache import PersistentCache
from .quote_book import QuoteBook
from .rate_limiter import RateLimiterRegistry
from .refresh_loop import QuoteRefreshLoop
from .scheduler import PeriodicTask
from .settings import MarketSettings

logger = logging.getLogger(__name__)

QUOTE_SOURCE = "quote"
HISTORY_SOURCE = "history"


def normalize_symbol(symbol: str) -> str:
    return symbol.upper().strip()


class MarketDataService:
    def __init__(
        self,
        settings: MarketSettings | None = None,
        provider: QuoteProvider | None = None,
        clock: Clock | None = None,
        dedupe_inflight: bool = False,
    ) -> None:
        self._settings = settings or MarketSettings.from_env()
        self._clock = clock or Clock()
        self._provider = provider or create_quote_provider(self._settings, self._clock)

        s = self._settings
        self.limiters = RateLimiterRegistry(
            {QUOTE_SOURCE: s.quote_rate_limit, HISTORY_SOURCE: s.history_rate_limit},
            window_ms=s.rate_limit_window_ms,
            clock=self._clock,
        )
        self.memo = MemoCache(default_ttl_ms=s.quote_memo_ttl_ms, clock=self._clock)
        self.persistent = PersistentCache(s.cache_database_url, clock=self._clock)
        self.fetch_through = FetchThroughOrchestrator(self.persistent, dedupe_inflight=dedupe_inflight)
        self.downsampler = SeriesDownsampler(clock=self._clock)
        self.book = QuoteBook()

        self._refresh_loop: QuoteRefreshLoop | None = None
        self._sweeper: PeriodicTask | None = None

    @property
    def provider(self) -> QuoteProvider:
        return self._provider

    @property
    def refresh_loop(self) -> QuoteRefreshLoop | None:
        return self._refresh_loop

    # --- Lifecycle ---

    async def initialize(self) -> None:
        await self.persistent.initialize()
        interval = self._settings.cache_sweep_interval
        if interval > 0 and self.persistent.enabled:
            self._sweeper = PeriodicTask("cache-sweep", self.sweep_expired, interval=interval)
            self._sweeper.start()
        logger.info("Market data service initialized (provider=%s)", self._provider.name)

    async def shutdown(self) -> None:
        await self.stop_refresh_loop()
        if self._sweeper is not None:
            await self._sweeper.stop()
            self._sweeper = None
        await self._provider.close()
        await self.persistent.close()
        logger.info("Market data service shut down")

    # --- Quotes ---

    async def get_quote(self, symbol: str) -> Quote | None:
        """Live quote for a symbol, fetched on demand if it is not tracked yet.

        Returns None when the upstream has nothing for the symbol.
        """
        symbol = normalize_symbol(symbol)
        quote = self.book.get(symbol)
        if quote is not None:
            return quote

        try:
            snapshot = await self.memo.fetch_with_cache(
                f"quote_{symbol}",
                lambda: self._provider.fetch_quote(symbol),
                ttl_ms=self._settings.quote_memo_ttl_ms,
                limiter=self.limiters.get(QUOTE_SOURCE),
            )
        except MarketDataError as e:
            logger.warning("Quote unavailable for %s: %s", symbol, e)
            return None
        return self.book.apply(symbol, snapshot, timestamp=self._clock.now_ms())

    def get_quotes(self) -> dict[str, Quote]:
        return self.book.get_all()

    async def start_refresh_loop(self, symbols: list[str], interval_ms: int | None = None) -> QuoteRefreshLoop:
        """(Re)start the refresh loop over ``symbols``. A running loop is stopped first.

        ``interval_ms`` defaults to the configured QUOTE_REFRESH_INTERVAL.
        """
        await self.stop_refresh_loop()
        loop = QuoteRefreshLoop(
            fetch_quote=self._fetch_quote_for_refresh,
            limiter=self.limiters.get(QUOTE_SOURCE),
            book=self.book,
            interval=self._settings.quote_refresh_interval if interval_ms is None else interval_ms / 1000.0,
            inter_call_delay_ms=self._settings.quote_inter_call_delay_ms,
            clock=self._clock,
            downsampler=self.downsampler,
        )
        self._refresh_loop = loop
        await loop.start(symbols)
        return loop

    async def stop_refresh_loop(self) -> None:
        if self._refresh_loop is not None:
            await self._refresh_loop.stop()
            self._refresh_loop = None

    async def _fetch_quote_for_refresh(self, symbol: str) -> QuoteSnapshot:
        snapshot = await self._provider.fetch_quote(symbol)
        self.memo.set(f"quote_{symbol}", snapshot, self._settings.quote_memo_ttl_ms)
        return snapshot

    # --- Historical series ---

    async def get_or_fetch(self, symbol: str, period: TimePeriod | str) -> list[PricePoint]:
        """Series for one (symbol, period). Empty when unavailable, never raises for upstream errors."""
        symbol = normalize_symbol(symbol)
        period = TimePeriod.parse(period)
        try:
            return await self._resolve(symbol, period)
        except MarketDataError as e:
            logger.warning("History unavailable for %s (%s): %s", symbol, period.value, e)
            return []

    async def get_history(
        self,
        symbol: str,
        periods: list[TimePeriod | str] | None = None,
    ) -> dict[TimePeriod, list[PricePoint]]:
        """Series for several periods of one symbol, fetched one after another.

        A failed period yields an empty series. Raises AllUnitsFailed only
        when every requested period failed.
        """
        symbol = normalize_symbol(symbol)
        wanted = [TimePeriod.parse(p) for p in periods] if periods else list(ORDERED_PERIODS)
        result: dict[TimePeriod, list[PricePoint]] = {}
        failures: dict[str, Exception] = {}

        for index, period in enumerate(wanted):
            if index > 0:
                await self._clock.sleep(self._settings.history_period_delay_ms)
            try:
                result[period] = await self._resolve(symbol, period)
            except MarketDataError as e:
                logger.error("History for %s (%s) failed: %s", symbol, period.value, e)
                failures[period.value] = e
                result[period] = []

        if wanted and len(failures) == len(wanted):
            raise AllUnitsFailed(failures)
        return result

    def get_series(self, symbol: str, period: TimePeriod | str) -> list[PricePoint]:
        """Series derived from ingested ticks only (no upstream, no cache)."""
        return self.downsampler.series(normalize_symbol(symbol), period)

    def ingest_tick(self, tick: RawTick) -> None:
        self.downsampler.ingest(tick)

    async def _resolve(self, symbol: str, period: TimePeriod) -> list[PricePoint]:
        if not self._provider.supports_history:
            # Derived from live ticks; not persisted
            return self.downsampler.series(symbol, period)
        return await self.fetch_through.get_or_fetch(symbol, period, lambda: self._load_history(symbol, period))

    async def _load_history(self, symbol: str, period: TimePeriod) -> list[PricePoint]:
        config = PERIOD_CONFIGS[period]
        request = config.upstream
        # Periods with the same upstream request share one memoized response
        key = f"aggs_{symbol}_{request.multiplier}_{request.timespan}_{request.lookback_ms}"
        bars = await self.memo.fetch_with_cache(
            key,
            lambda: self._provider.fetch_history(symbol, request, self._clock.now_ms()),
            ttl_ms=self._settings.history_memo_ttl_ms,
            limiter=self.limiters.get(HISTORY_SOURCE),
        )
        cutoff = self._clock.now_ms() - config.span_ms
        points = [p for p in bars if p.timestamp >= cutoff]
        return points[-config.max_points:]

    # --- Maintenance ---

    async def sweep_expired(self) -> int:
        return await self.persistent.sweep_expired()

    async def clear_symbol(self, symbol: str) -> None:
        """Forget every cached series, derived series and live quote for a symbol."""
        symbol = normalize_symbol(symbol)
        await self.persistent.delete_all_for_symbol(symbol)
        self.downsampler.remove_symbol(symbol)
        self.book.remove(symbol)

    def reset_caches(self) -> None:
        """Drop memoized upstream responses and reset the rate-limit windows."""
        self.memo.clear()
        self.limiters.reset_all()
