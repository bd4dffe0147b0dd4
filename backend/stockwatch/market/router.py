"""HTTP endpoints for quotes and historical series, plus an SSE quote stream."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from .periods import TimePeriod
from .quote_book import QuoteBook
from .service import MarketDataService

logger = logging.getLogger(__name__)


def create_market_router(service: MarketDataService) -> APIRouter:
    """Create the market data router bound to a service instance.

    This factory pattern lets us inject the service without globals.
    """
    router = APIRouter(prefix="/api/market", tags=["market"])

    @router.get("/quotes")
    async def list_quotes() -> dict:
        return {symbol: quote.to_dict() for symbol, quote in service.get_quotes().items()}

    @router.get("/quotes/{symbol}")
    async def get_quote(symbol: str) -> dict:
        quote = await service.get_quote(symbol)
        if quote is None:
            raise HTTPException(status_code=404, detail=f"Quote unavailable for {symbol.upper()}")
        return quote.to_dict()

    @router.get("/history/{symbol}/{period}")
    async def get_history(symbol: str, period: str) -> dict:
        try:
            resolved = TimePeriod.parse(period)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
        points = await service.get_or_fetch(symbol, resolved)
        return {
            "symbol": symbol.upper().strip(),
            "period": resolved.value,
            "available": bool(points),
            "points": [p.to_dict() for p in points],
        }

    @router.get("/stream")
    async def stream_quotes(request: Request) -> StreamingResponse:
        """SSE endpoint for live quote updates.

        The client connects with EventSource and receives events in the format:

            data: {"AAPL": {"symbol": "AAPL", "price": 190.50, ...}, ...}

        Includes a retry directive so the browser auto-reconnects on
        disconnection (EventSource built-in behavior).
        """
        return StreamingResponse(
            _generate_events(service.book, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


async def _generate_events(
    book: QuoteBook,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Yield SSE events whenever the quote book version changes.

    Stops when the client disconnects.
    """
    yield "retry: 1000\n\n"

    last_version = -1
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = book.version
            if current_version != last_version:
                last_version = current_version
                quotes = book.get_all()
                if quotes:
                    payload = json.dumps({symbol: quote.to_dict() for symbol, quote in quotes.items()})
                    yield f"data: {payload}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
