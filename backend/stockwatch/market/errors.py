"""Error taxonomy for the market data pipeline.

Per-unit errors (one symbol, or one symbol/period pair) are logged and
isolated by the loops and the service. Only AllUnitsFailed reaches the
top-level consumer, and only when nothing in a batch succeeded.
"""

from __future__ import annotations


class MarketDataError(Exception):
    """Base class for market data errors."""


class UpstreamUnavailable(MarketDataError):
    """Network failure, non-2xx response, or client error from an upstream source."""

    def __init__(self, source: str, symbol: str, reason: str = "") -> None:
        super().__init__(f"{source} unavailable for {symbol}: {reason}" if reason else f"{source} unavailable for {symbol}")
        self.source = source
        self.symbol = symbol


class InvalidSymbolOrNoData(MarketDataError):
    """The upstream returned nothing usable for this symbol. Not retryable."""

    def __init__(self, symbol: str, reason: str = "no data") -> None:
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol


class MalformedResponse(InvalidSymbolOrNoData):
    """Upstream payload could not be parsed. Handled like InvalidSymbolOrNoData."""


class CacheBackendUnavailable(MarketDataError):
    """The persistent cache store is unconfigured or unreachable."""


class AllUnitsFailed(MarketDataError):
    """Every unit of a batch failed. Carries the per-unit errors."""

    def __init__(self, failures: dict[str, Exception]) -> None:
        super().__init__(f"All {len(failures)} units failed: {', '.join(sorted(failures))}")
        self.failures = failures
