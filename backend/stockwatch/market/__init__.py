"""Market data caching and time-windowing subsystem for StockWatch.

Public API:
    MarketDataService     - Owns shared state; get_quote / get_or_fetch / refresh loop
    RateLimiter           - Rolling-window limiter guarding one upstream source
    MemoCache             - Short-TTL in-process cache for upstream responses
    PersistentCache       - Durable (symbol, period) series store with per-period TTL
    FetchThroughOrchestrator - Cache-or-fetch for historical series
    SeriesDownsampler     - Bucketed per-period series derived from raw ticks
    QuoteRefreshLoop      - Scheduled sequential quote refresh
    QuoteProvider         - Abstract interface for upstream providers
    create_quote_provider - Factory that selects simulator or Massive
    create_market_router  - FastAPI router factory for REST and SSE endpoints
"""

from .clock import Clock
from .downsampler import SeriesDownsampler
from .errors import (
    AllUnitsFailed,
    CacheBackendUnavailable,
    InvalidSymbolOrNoData,
    MalformedResponse,
    MarketDataError,
    UpstreamUnavailable,
)
from .factory import create_quote_provider
from .fetch_through import FetchThroughOrchestrator
from .interface import QuoteProvider
from .memo_cache import MemoCache
from .models import PriceDirection, PricePoint, Quote, QuoteSnapshot, RawTick
from .periods import PERIOD_CONFIGS, PeriodConfig, TimePeriod, cache_ttl_ms
from .persistent_cache import PersistentCache
from .quote_book import QuoteBook
from .rate_limiter import RateLimiter, RateLimiterRegistry
from .refresh_loop import QuoteRefreshLoop
from .router import create_market_router
from .service import MarketDataService
from .settings import MarketSettings

__all__ = [
    "AllUnitsFailed",
    "CacheBackendUnavailable",
    "Clock",
    "FetchThroughOrchestrator",
    "InvalidSymbolOrNoData",
    "MalformedResponse",
    "MarketDataError",
    "MarketDataService",
    "MarketSettings",
    "MemoCache",
    "PERIOD_CONFIGS",
    "PeriodConfig",
    "PersistentCache",
    "PriceDirection",
    "PricePoint",
    "Quote",
    "QuoteBook",
    "QuoteProvider",
    "QuoteRefreshLoop",
    "QuoteSnapshot",
    "RateLimiter",
    "RateLimiterRegistry",
    "RawTick",
    "SeriesDownsampler",
    "TimePeriod",
    "UpstreamUnavailable",
    "cache_ttl_ms",
    "create_market_router",
    "create_quote_provider",
]
