"""Tests for market data models."""

from stockwatch.market.models import (
    PriceDirection,
    PricePoint,
    Quote,
    QuoteSnapshot,
    merge_series,
)


def _snapshot(price: float, **overrides) -> QuoteSnapshot:
    fields = dict(
        price=price,
        change=1.0,
        change_percent=0.5,
        previous_close=price - 1.0,
        day_high=price + 2.0,
        day_low=price - 2.0,
    )
    fields.update(overrides)
    return QuoteSnapshot(**fields)


class TestPriceDirection:
    """Unit tests for direction derivation."""

    def test_up(self):
        assert PriceDirection.compare(191.0, 190.0) is PriceDirection.UP

    def test_down(self):
        assert PriceDirection.compare(189.0, 190.0) is PriceDirection.DOWN

    def test_equal_is_neutral(self):
        assert PriceDirection.compare(190.0, 190.0) is PriceDirection.NEUTRAL


class TestPricePoint:
    """Unit tests for PricePoint serialization."""

    def test_round_trip_dict(self):
        """Test that to_dict/from_dict preserve the point."""
        point = PricePoint(timestamp=1707580800000, price=190.5)
        assert PricePoint.from_dict(point.to_dict()) == point

    def test_from_dict_coerces_types(self):
        """Test that JSON-decoded numbers are coerced to int/float."""
        point = PricePoint.from_dict({"timestamp": 1707580800000.0, "price": "190.5"})
        assert point.timestamp == 1707580800000
        assert isinstance(point.timestamp, int)
        assert point.price == 190.5


class TestQuote:
    """Unit tests for in-place quote updates."""

    def test_apply_sets_fields(self):
        """Test that apply() copies the snapshot fields."""
        quote = Quote(symbol="AAPL", price=190.0)
        quote.apply(_snapshot(191.0), timestamp=1000)
        assert quote.price == 191.0
        assert quote.change == 1.0
        assert quote.change_percent == 0.5
        assert quote.day_high == 193.0
        assert quote.day_low == 189.0
        assert quote.updated_at == 1000

    def test_apply_tracks_previous_price(self):
        """Test that previous_price is the price before the update."""
        quote = Quote(symbol="AAPL", price=190.0)
        quote.apply(_snapshot(191.0), timestamp=1000)
        quote.apply(_snapshot(189.5), timestamp=2000)
        assert quote.previous_price == 191.0
        assert quote.price_direction is PriceDirection.DOWN

    def test_volume_only_grows(self):
        """Test that the simulated volume counter never decreases."""
        quote = Quote(symbol="AAPL", price=190.0)
        quote.apply(_snapshot(191.0), timestamp=1000, volume_increment=500)
        quote.apply(_snapshot(191.0), timestamp=2000, volume_increment=-100)
        assert quote.volume == 500

    def test_to_dict(self):
        """Test serialization for JSON transmission."""
        quote = Quote(symbol="AAPL", price=190.0)
        quote.apply(_snapshot(191.0), timestamp=1000)
        data = quote.to_dict()
        assert data["symbol"] == "AAPL"
        assert data["price_direction"] == "up"
        assert data["previous_price"] == 190.0


class TestMergeSeries:
    """Unit tests for merge_series."""

    def test_sorted_and_unique(self):
        """Test that output is strictly ascending with unique timestamps."""
        merged = merge_series(
            [PricePoint(3, 3.0), PricePoint(1, 1.0)],
            [PricePoint(2, 2.0), PricePoint(1, 1.5)],
        )
        assert [p.timestamp for p in merged] == [1, 2, 3]

    def test_later_series_wins(self):
        """Test that identical timestamps keep the latest value."""
        merged = merge_series([PricePoint(1, 1.0)], [PricePoint(1, 9.0)])
        assert merged == [PricePoint(1, 9.0)]

    def test_max_points_keeps_newest(self):
        """Test trimming to the most recent points."""
        points = [PricePoint(i, float(i)) for i in range(10)]
        merged = merge_series(points, max_points=3)
        assert [p.timestamp for p in merged] == [7, 8, 9]

    def test_empty(self):
        assert merge_series([]) == []
