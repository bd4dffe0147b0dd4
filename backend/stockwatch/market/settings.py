"""Environment-driven configuration for the market data subsystem."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./stockwatch_cache.db"


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float(env: Mapping[str, str], name: str, default: float, minimum: float = 0.0) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class MarketSettings:
    massive_api_key: str = ""
    cache_database_url: str = DEFAULT_DATABASE_URL
    quote_rate_limit: int = 5
    history_rate_limit: int = 5
    rate_limit_window_ms: int = 60_000
    quote_refresh_interval: float = 15.0  # seconds
    quote_inter_call_delay_ms: int = 250
    quote_memo_ttl_ms: int = 30_000
    history_memo_ttl_ms: int = 300_000
    cache_sweep_interval: float = 600.0  # seconds, 0 disables
    history_period_delay_ms: int = 200

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> MarketSettings:
        """Read settings from environment variables. Unset or empty values use defaults."""
        env = os.environ if env is None else env
        database_url = env.get("CACHE_DATABASE_URL")
        return cls(
            massive_api_key=env.get("MASSIVE_API_KEY", "").strip(),
            cache_database_url=DEFAULT_DATABASE_URL if database_url is None else database_url.strip(),
            quote_rate_limit=_int(env, "QUOTE_RATE_LIMIT", 5, minimum=1),
            history_rate_limit=_int(env, "HISTORY_RATE_LIMIT", 5, minimum=1),
            rate_limit_window_ms=_int(env, "RATE_LIMIT_WINDOW_MS", 60_000, minimum=1),
            quote_refresh_interval=_float(env, "QUOTE_REFRESH_INTERVAL", 15.0, minimum=0.01),
            quote_inter_call_delay_ms=_int(env, "QUOTE_INTER_CALL_DELAY_MS", 250),
            quote_memo_ttl_ms=_int(env, "QUOTE_MEMO_TTL_MS", 30_000),
            history_memo_ttl_ms=_int(env, "HISTORY_MEMO_TTL_MS", 300_000),
            cache_sweep_interval=_float(env, "CACHE_SWEEP_INTERVAL", 600.0),
            history_period_delay_ms=_int(env, "HISTORY_PERIOD_DELAY_MS", 200),
        )
