"""Derives per-period bucketed series from a raw tick stream."""

from __future__ import annotations

import logging
from collections import deque

import numpy as np

from .clock import Clock
from .models import PricePoint, RawTick, merge_series
from .periods import PERIOD_CONFIGS, PeriodConfig, TimePeriod

logger = logging.getLogger(__name__)

# 24 hours of ticks at a 3s ingestion cadence
DEFAULT_RETENTION_POINTS = 28_800


def bucket_last_values(
    timestamps: np.ndarray,
    prices: np.ndarray,
    now: int,
    bucket_width_ms: int,
    max_points: int,
) -> list[PricePoint]:
    """Reduce ticks to one point per fixed-width bucket.

    The window is the max_points buckets ending at ``now``; bucket i covers
    (start + i*width, start + (i+1)*width]. Within a bucket the tick that
    arrived last wins. Empty buckets are omitted, never interpolated.

    ``timestamps`` and ``prices`` are in arrival order.
    """
    start = now - max_points * bucket_width_ms
    mask = (timestamps > start) & (timestamps <= now)
    if not mask.any():
        return []

    ts = timestamps[mask]
    px = prices[mask]
    buckets = (ts - start - 1) // bucket_width_ms

    # First occurrence in the reversed array == last arrival per bucket
    _, first_in_reversed = np.unique(buckets[::-1], return_index=True)
    last_idx = len(buckets) - 1 - first_in_reversed
    return [PricePoint(timestamp=int(ts[i]), price=float(px[i])) for i in last_idx]


class SeriesDownsampler:
    """Keeps a bounded raw tick buffer per symbol and a bucketed series per period.

    On every tick each period is recomputed from the buffer and merged into
    the stored series by timestamp, then trimmed to the period's max_points.
    """

    def __init__(
        self,
        periods: dict[TimePeriod, PeriodConfig] | None = None,
        retention_points: int = DEFAULT_RETENTION_POINTS,
        clock: Clock | None = None,
    ) -> None:
        if retention_points < 1:
            raise ValueError("retention_points must be >= 1")
        self._configs = dict(PERIOD_CONFIGS if periods is None else periods)
        self._retention = retention_points
        self._clock = clock or Clock()
        self._raw: dict[str, deque[RawTick]] = {}
        self._series: dict[str, dict[TimePeriod, list[PricePoint]]] = {}

    def ingest(self, tick: RawTick) -> None:
        buffer = self._raw.get(tick.symbol)
        if buffer is None:
            buffer = self._raw[tick.symbol] = deque(maxlen=self._retention)
        # deque(maxlen) drops the oldest tick once the cap is exceeded
        buffer.append(tick)

        now = self._clock.now_ms()
        timestamps = np.fromiter((t.timestamp for t in buffer), dtype=np.int64, count=len(buffer))
        prices = np.fromiter((t.price for t in buffer), dtype=np.float64, count=len(buffer))

        stored = self._series.setdefault(tick.symbol, {})
        for period, config in self._configs.items():
            fresh = bucket_last_values(timestamps, prices, now, config.bucket_width_ms, config.max_points)
            if fresh:
                stored[period] = merge_series(stored.get(period, []), fresh, max_points=config.max_points)

    def series(self, symbol: str, period: TimePeriod | str) -> list[PricePoint]:
        """Current bucketed series. Empty when nothing has been ingested."""
        return list(self._series.get(symbol, {}).get(TimePeriod.parse(period), []))

    def remove_symbol(self, symbol: str) -> None:
        self._raw.pop(symbol, None)
        self._series.pop(symbol, None)
        logger.debug("Downsampler: dropped state for %s", symbol)
