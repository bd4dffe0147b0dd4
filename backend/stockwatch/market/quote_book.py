"""Thread-safe in-memory book of live quotes."""

from __future__ import annotations

from threading import Lock

from .models import Quote, QuoteSnapshot


class QuoteBook:
    """Latest Quote per symbol. Lives only as long as the process.

    Writers: QuoteRefreshLoop and on-demand MarketDataService.get_quote().
    Readers: SSE streaming endpoint and REST quote endpoints.
    """

    def __init__(self) -> None:
        self._quotes: dict[str, Quote] = {}
        self._lock = Lock()
        self._version: int = 0  # Monotonically increasing; bumped on every update

    def apply(
        self,
        symbol: str,
        snapshot: QuoteSnapshot,
        timestamp: int,
        volume_increment: int = 0,
    ) -> Quote:
        """Fold a snapshot into the symbol's quote, creating it on first use.

        The previous price is the quote's price before this call, so the very
        first update is neutral.
        """
        with self._lock:
            quote = self._quotes.get(symbol)
            if quote is None:
                quote = Quote(symbol=symbol, price=round(snapshot.price, 2))
                self._quotes[symbol] = quote
            quote.apply(snapshot, timestamp=timestamp, volume_increment=volume_increment)
            self._version += 1
            return quote

    def get(self, symbol: str) -> Quote | None:
        with self._lock:
            return self._quotes.get(symbol)

    def get_all(self) -> dict[str, Quote]:
        """Snapshot of all current quotes. Returns a shallow copy."""
        with self._lock:
            return dict(self._quotes)

    def remove(self, symbol: str) -> None:
        with self._lock:
            if self._quotes.pop(symbol, None) is not None:
                self._version += 1

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._quotes
