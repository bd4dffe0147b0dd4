"""Factory for creating upstream quote providers."""

from __future__ import annotations

import logging

from .clock import Clock
from .interface import QuoteProvider
from .settings import MarketSettings

logger = logging.getLogger(__name__)


def create_quote_provider(
    settings: MarketSettings | None = None,
    clock: Clock | None = None,
) -> QuoteProvider:
    """Create the appropriate quote provider based on configuration.

    - MASSIVE_API_KEY set and non-empty → MassiveQuoteProvider (real market data)
    - Otherwise → SimulatorQuoteProvider (GBM simulation)
    """
    settings = settings or MarketSettings.from_env()

    if settings.massive_api_key:
        from .massive_client import MassiveQuoteProvider

        logger.info("Quote provider: Massive API (real data)")
        return MassiveQuoteProvider(api_key=settings.massive_api_key)
    else:
        from .simulator import SimulatorQuoteProvider

        logger.info("Quote provider: GBM Simulator")
        return SimulatorQuoteProvider(clock=clock)
