"""Abstract interface for upstream quote providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import PricePoint, QuoteSnapshot
from .periods import AggregateRequest


class QuoteProvider(ABC):
    """Contract for upstream market data providers.

    Providers are pull-based: the refresh loop and the fetch-through layer
    call them, always behind a rate limiter. A provider never caches.

    Failures are reported with the errors in ``errors``:
        UpstreamUnavailable   - network / HTTP / client failure
        InvalidSymbolOrNoData - nothing usable for the symbol
        MalformedResponse     - payload could not be parsed

    Providers without a historical endpoint leave ``supports_history``
    False; their history is derived from the tick stream instead.
    """

    name: str = "upstream"
    supports_history: bool = False

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> QuoteSnapshot:
        """Fetch the current quote for one symbol."""

    async def fetch_history(
        self,
        symbol: str,
        request: AggregateRequest,
        now_ms: int,
    ) -> list[PricePoint]:
        """Fetch bars ending at now_ms, ascending by timestamp."""
        raise NotImplementedError(f"{self.name} does not provide historical data")

    async def close(self) -> None:
        """Release client resources. Safe to call multiple times."""
