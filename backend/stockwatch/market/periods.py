"""Fixed set of historical periods and their per-period configuration.

Each period carries:
    bucket_width_ms - width of one downsampling bucket
    max_points      - cap on the stored series length
    cache_ttl_ms    - persistent cache time-to-live
    span_ms         - nominal horizon the series covers
    upstream        - aggregate request used to fetch it from the upstream source

TTLs grow with the horizon: longer-horizon data tolerates more staleness.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


class TimePeriod(str, Enum):
    MIN_15 = "15min"
    HOUR_1 = "1h"
    DAY_1 = "1d"
    DAY_5 = "5d"
    MONTH_1 = "1m"
    MONTH_3 = "3m"
    MONTH_6 = "6m"
    YEAR_1 = "1y"

    @classmethod
    def parse(cls, value: str | TimePeriod) -> TimePeriod:
        """Resolve a period tag such as '5d'. Raises ValueError for unknown tags."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown period {value!r}") from None


@dataclass(frozen=True, slots=True)
class AggregateRequest:
    """Upstream bar request. Periods sharing a request share one upstream call."""

    multiplier: int
    timespan: str  # "minute" | "hour" | "day"
    lookback_ms: int


@dataclass(frozen=True, slots=True)
class PeriodConfig:
    bucket_width_ms: int
    max_points: int
    cache_ttl_ms: int
    span_ms: int
    upstream: AggregateRequest


_INTRADAY = AggregateRequest(multiplier=1, timespan="minute", lookback_ms=DAY_MS)
_MULTI_DAY = AggregateRequest(multiplier=5, timespan="minute", lookback_ms=5 * DAY_MS)
_DAILY = AggregateRequest(multiplier=1, timespan="day", lookback_ms=365 * DAY_MS)

PERIOD_CONFIGS: dict[TimePeriod, PeriodConfig] = {
    TimePeriod.MIN_15: PeriodConfig(15 * SECOND_MS, 60, 15 * MINUTE_MS, 15 * MINUTE_MS, _INTRADAY),
    TimePeriod.HOUR_1: PeriodConfig(MINUTE_MS, 60, 30 * MINUTE_MS, HOUR_MS, _INTRADAY),
    TimePeriod.DAY_1: PeriodConfig(MINUTE_MS, 390, HOUR_MS, DAY_MS, _MULTI_DAY),
    TimePeriod.DAY_5: PeriodConfig(5 * MINUTE_MS, 390, 2 * HOUR_MS, 5 * DAY_MS, _MULTI_DAY),
    TimePeriod.MONTH_1: PeriodConfig(HOUR_MS, 130, 6 * HOUR_MS, 30 * DAY_MS, _DAILY),
    TimePeriod.MONTH_3: PeriodConfig(2 * HOUR_MS, 270, 12 * HOUR_MS, 90 * DAY_MS, _DAILY),
    TimePeriod.MONTH_6: PeriodConfig(DAY_MS, 180, DAY_MS, 180 * DAY_MS, _DAILY),
    TimePeriod.YEAR_1: PeriodConfig(DAY_MS, 365, 7 * DAY_MS, 365 * DAY_MS, _DAILY),
}

# Ordered by nominal horizon, shortest first
ORDERED_PERIODS: tuple[TimePeriod, ...] = tuple(TimePeriod)


def period_config(period: TimePeriod | str) -> PeriodConfig:
    return PERIOD_CONFIGS[TimePeriod.parse(period)]


def cache_ttl_ms(period: TimePeriod | str) -> int:
    """Persistent cache TTL for a period, in milliseconds."""
    return period_config(period).cache_ttl_ms
