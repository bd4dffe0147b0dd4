"""Data models for market data."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PriceDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"

    @classmethod
    def compare(cls, price: float, previous_price: float) -> PriceDirection:
        if price > previous_price:
            return cls.UP
        elif price < previous_price:
            return cls.DOWN
        return cls.NEUTRAL


@dataclass(frozen=True, slots=True)
class PricePoint:
    """Immutable point of a historical series."""

    timestamp: int  # Unix milliseconds
    price: float

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "price": self.price}

    @classmethod
    def from_dict(cls, data: dict) -> PricePoint:
        return cls(timestamp=int(data["timestamp"]), price=float(data["price"]))


@dataclass(frozen=True, slots=True)
class RawTick:
    """A single observed price, as ingested by the downsampler."""

    symbol: str
    timestamp: int  # Unix milliseconds
    price: float


@dataclass(frozen=True, slots=True)
class QuoteSnapshot:
    """One upstream quote response, already validated."""

    price: float
    change: float
    change_percent: float
    previous_close: float
    day_high: float
    day_low: float


@dataclass(slots=True)
class Quote:
    """Live quote for a symbol. Mutated in place on every successful refresh.

    On the first update previous_price == price and the direction is neutral.
    """

    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    previous_close: float = 0.0
    day_high: float = 0.0
    day_low: float = 0.0
    previous_price: float = 0.0
    price_direction: PriceDirection = PriceDirection.NEUTRAL
    volume: int = 0
    updated_at: int = 0  # Unix milliseconds

    def apply(self, snapshot: QuoteSnapshot, timestamp: int, volume_increment: int = 0) -> None:
        """Fold a fresh upstream snapshot into this quote."""
        self.previous_price = self.price
        self.price = round(snapshot.price, 2)
        self.change = round(snapshot.change, 4)
        self.change_percent = round(snapshot.change_percent, 4)
        self.previous_close = snapshot.previous_close
        self.day_high = snapshot.day_high
        self.day_low = snapshot.day_low
        self.price_direction = PriceDirection.compare(self.price, self.previous_price)
        self.volume += max(0, volume_increment)
        self.updated_at = timestamp

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "symbol": self.symbol,
            "price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "previous_close": self.previous_close,
            "day_high": self.day_high,
            "day_low": self.day_low,
            "previous_price": self.previous_price,
            "price_direction": self.price_direction.value,
            "volume": self.volume,
            "updated_at": self.updated_at,
        }


def merge_series(
    *series: list[PricePoint],
    max_points: int | None = None,
) -> list[PricePoint]:
    """Merge point sequences by timestamp.

    Later sequences win on identical timestamps. The result is strictly
    ascending and, when max_points is given, keeps only the newest points.
    """
    by_timestamp: dict[int, float] = {}
    for points in series:
        for point in points:
            by_timestamp[point.timestamp] = point.price
    merged = [PricePoint(ts, by_timestamp[ts]) for ts in sorted(by_timestamp)]
    if max_points is not None:
        merged = merged[-max_points:] if max_points > 0 else []
    return merged
