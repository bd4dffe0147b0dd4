"""GBM-based quote simulator, used when no upstream credentials are configured."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from .clock import Clock
from .interface import QuoteProvider
from .models import QuoteSnapshot
from .periods import DAY_MS
from .seed_prices import DEFAULT_PARAMS, SEED_PRICES, SYMBOL_PARAMS

logger = logging.getLogger(__name__)

# 252 trading days * 6.5 hours/day * 3600 seconds/hour
TRADING_SECONDS_PER_YEAR = 252 * 6.5 * 3600
MIN_STEP_MS = 500


@dataclass(slots=True)
class _SymbolState:
    price: float
    previous_close: float
    day_high: float
    day_low: float
    day_index: int
    last_update_ms: int
    mu: float
    sigma: float


class SimulatorQuoteProvider(QuoteProvider):
    """Geometric Brownian Motion quotes per symbol.

        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    dt is the wall time since the symbol's previous quote, as a fraction of
    a trading year (at least MIN_STEP_MS). Day high/low reset at UTC
    midnight, when the last price becomes the previous close.

    No historical endpoint: history for simulated symbols is derived from
    the tick stream by the downsampler.
    """

    name = "simulator"
    supports_history = False

    def __init__(
        self,
        clock: Clock | None = None,
        event_probability: float = 0.001,
        seed: int | None = None,
    ) -> None:
        self._clock = clock or Clock()
        self._event_prob = event_probability
        self._rng = np.random.default_rng(seed)
        self._symbols: dict[str, _SymbolState] = {}

    async def fetch_quote(self, symbol: str) -> QuoteSnapshot:
        state = self._state_for(symbol)
        now = self._clock.now_ms()

        day_index = now // DAY_MS
        if day_index != state.day_index:
            state.previous_close = state.price
            state.day_high = state.day_low = state.price
            state.day_index = day_index

        elapsed_ms = max(MIN_STEP_MS, now - state.last_update_ms)
        state.price = self._step(state, elapsed_ms / 1000.0 / TRADING_SECONDS_PER_YEAR)
        state.last_update_ms = now

        # Random event: ~0.1% chance per quote
        if self._rng.random() < self._event_prob:
            shock = self._rng.uniform(0.02, 0.05) * self._rng.choice([-1, 1])
            state.price *= 1 + shock
            logger.debug("Random event on %s: %+.1f%%", symbol, shock * 100)

        state.price = max(0.01, state.price)
        state.day_high = max(state.day_high, state.price)
        state.day_low = min(state.day_low, state.price)

        change = state.price - state.previous_close
        return QuoteSnapshot(
            price=round(state.price, 2),
            change=round(change, 4),
            change_percent=round(change / state.previous_close * 100, 4) if state.previous_close else 0.0,
            previous_close=round(state.previous_close, 2),
            day_high=round(state.day_high, 2),
            day_low=round(state.day_low, 2),
        )

    # --- Internals ---

    def _step(self, state: _SymbolState, dt: float) -> float:
        z = self._rng.standard_normal()
        drift = (state.mu - 0.5 * state.sigma**2) * dt
        diffusion = state.sigma * math.sqrt(dt) * z
        return state.price * math.exp(drift + diffusion)

    def _state_for(self, symbol: str) -> _SymbolState:
        state = self._symbols.get(symbol)
        if state is None:
            seed_price = SEED_PRICES.get(symbol)
            if seed_price is None:
                seed_price = float(self._rng.uniform(50.0, 300.0))
            params = SYMBOL_PARAMS.get(symbol, DEFAULT_PARAMS)
            now = self._clock.now_ms()
            state = _SymbolState(
                price=seed_price,
                previous_close=seed_price,
                day_high=seed_price,
                day_low=seed_price,
                day_index=now // DAY_MS,
                last_update_ms=now,
                mu=params["mu"],
                sigma=params["sigma"],
            )
            self._symbols[symbol] = state
            logger.debug("Simulator: seeded %s at %.2f", symbol, seed_price)
        return state
