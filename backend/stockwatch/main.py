"""StockWatch application entry point.

    uvicorn stockwatch.main:app --app-dir backend
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stockwatch.market import MarketDataService, create_market_router
from stockwatch.market.seed_prices import DEFAULT_SYMBOLS

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(service: MarketDataService | None = None) -> FastAPI:
    service = service or MarketDataService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.initialize()
        symbols = [s for s in os.environ.get("WATCHLIST", "").split(",") if s.strip()] or DEFAULT_SYMBOLS
        await service.start_refresh_loop(symbols)
        yield
        await service.shutdown()

    app = FastAPI(title="StockWatch", lifespan=lifespan)
    app.state.market = service
    app.include_router(create_market_router(service))
    return app


app = create_app()
