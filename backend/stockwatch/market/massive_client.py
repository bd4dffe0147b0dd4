"""Massive (Polygon.io) API client for real market data."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import InvalidSymbolOrNoData, MalformedResponse, UpstreamUnavailable
from .interface import QuoteProvider
from .models import PricePoint, QuoteSnapshot, merge_series
from .periods import AggregateRequest

logger = logging.getLogger(__name__)


class MassiveQuoteProvider(QuoteProvider):
    """QuoteProvider backed by the Massive (Polygon.io) REST API.

    Quotes come from GET /v2/snapshot/locale/us/markets/stocks/tickers/{ticker},
    history from GET /v2/aggs/ticker/{ticker}/range/{multiplier}/{timespan}/{from}/{to}.

    Rate limits:
      - Free tier: 5 req/min → keep QUOTE_RATE_LIMIT / HISTORY_RATE_LIMIT at 5
      - Paid tiers: raise the limits accordingly
    """

    name = "massive"
    supports_history = True

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key
        self._client: Any = None  # Lazy import to avoid hard dependency at import time

    async def fetch_quote(self, symbol: str) -> QuoteSnapshot:
        try:
            # The Massive RESTClient is synchronous; run it in a thread to
            # avoid blocking the event loop.
            snapshot = await asyncio.to_thread(self._fetch_snapshot, symbol)
        except Exception as e:
            # Common failures: 401 (bad key), 404 (unknown ticker), 429, network errors
            raise UpstreamUnavailable(self.name, symbol, str(e)) from e

        if snapshot is None:
            raise InvalidSymbolOrNoData(symbol, "empty snapshot")
        return self._parse_snapshot(symbol, snapshot)

    async def fetch_history(
        self,
        symbol: str,
        request: AggregateRequest,
        now_ms: int,
    ) -> list[PricePoint]:
        try:
            aggs = await asyncio.to_thread(self._fetch_aggs, symbol, request, now_ms)
        except Exception as e:
            raise UpstreamUnavailable(self.name, symbol, str(e)) from e

        points: list[PricePoint] = []
        for agg in aggs or []:
            try:
                points.append(PricePoint(timestamp=int(agg.timestamp), price=float(agg.close)))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping bar for %s: %s", symbol, e)
        logger.debug(
            "Massive aggs %s %d/%s: %d bars",
            symbol,
            request.multiplier,
            request.timespan,
            len(points),
        )
        return merge_series(points)

    async def close(self) -> None:
        self._client = None

    # --- Internal ---

    @staticmethod
    def _parse_snapshot(symbol: str, snap: Any) -> QuoteSnapshot:
        try:
            last_trade = snap.last_trade
            day = snap.day
            price = last_trade.price if last_trade is not None and last_trade.price else day.close
            previous_close = float(snap.prev_day.close)
            change = snap.todays_change
            change_percent = snap.todays_change_percent
            if not price:
                raise InvalidSymbolOrNoData(symbol, "no price available")
            price = float(price)
            if change is None:
                change = price - previous_close
            if change_percent is None:
                change_percent = change / previous_close * 100 if previous_close else 0.0
            return QuoteSnapshot(
                price=price,
                change=float(change),
                change_percent=float(change_percent),
                previous_close=previous_close,
                day_high=float(day.high or price),
                day_low=float(day.low or price),
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise MalformedResponse(symbol, f"malformed snapshot: {e}") from e

    def _rest(self) -> Any:
        if self._client is None:
            # Lazy import: the massive package is only needed with real market data.
            from massive import RESTClient

            self._client = RESTClient(api_key=self._api_key)
        return self._client

    def _fetch_snapshot(self, symbol: str) -> Any:
        """Synchronous call to the Massive REST API. Runs in a thread."""
        from massive.rest.models import SnapshotMarketType

        return self._rest().get_snapshot_ticker(SnapshotMarketType.STOCKS, symbol)

    def _fetch_aggs(self, symbol: str, request: AggregateRequest, now_ms: int) -> list:
        """Synchronous call to the Massive REST API. Runs in a thread."""
        return self._rest().get_aggs(
            ticker=symbol,
            multiplier=request.multiplier,
            timespan=request.timespan,
            from_=now_ms - request.lookback_ms,
            to=now_ms,
            adjusted=True,
            sort="asc",
            limit=50000,
        )
