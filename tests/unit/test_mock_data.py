"""
Unit Tests - Demo Mode Data
"""
import random
from datetime import date
from decimal import Decimal

from portfolio_pricing.data_providers.adapters.base import MOCK_SOURCE, AssetClass
from portfolio_pricing.data_providers.mock_data import MockDataGenerator, is_crypto_symbol


class TestMockDataGenerator:
    """Tests for MockDataGenerator."""

    def test_crypto_base_prices(self):
        assert MockDataGenerator.base_price("BTC") == 45000.0
        assert MockDataGenerator.base_price("eth") == 3000.0
        assert MockDataGenerator.base_price("DOGE") == 1.0

    def test_stock_base_price_is_stable_and_in_range(self):
        first = MockDataGenerator.base_price("AAPL")
        assert first == MockDataGenerator.base_price("AAPL")
        assert 100.0 <= first <= 500.0

    def test_crypto_detection(self):
        assert is_crypto_symbol("btc")
        assert not is_crypto_symbol("AAPL")

    def test_price_is_labelled_and_near_base(self):
        generator = MockDataGenerator(random.Random(7))
        price = generator.price("btc")

        assert price.symbol == "BTC"
        assert price.source == MOCK_SOURCE
        assert price.is_mock
        assert price.price > 0
        assert abs(float(price.price) - 45000.0) <= 45000.0 * 0.02 + 0.01

    def test_price_walk_stays_positive(self):
        generator = MockDataGenerator(random.Random(1))
        for _ in range(200):
            assert generator.price("SHIB").price > Decimal("0")

    def test_historical_one_point_per_day(self):
        generator = MockDataGenerator(random.Random(3))
        points = generator.historical("AAPL", date(2024, 1, 1), date(2024, 1, 10))

        assert len(points) == 10
        assert points[0].date == date(2024, 1, 1)
        assert points[-1].date == date(2024, 1, 10)
        for point in points:
            assert point.low <= point.high
            assert point.low <= min(point.open, point.close)

    def test_historical_empty_for_inverted_range(self):
        assert MockDataGenerator().historical("AAPL", date(2024, 2, 1), date(2024, 1, 1)) == []

    def test_search_catalogue(self):
        results = MockDataGenerator.search("apple")
        assert [r.symbol for r in results] == ["AAPL"]

        crypto = MockDataGenerator.search("BTC")
        assert crypto[0].asset_class == AssetClass.CRYPTO

        assert MockDataGenerator.search("   ") == []
        assert len(MockDataGenerator.search("a", limit=3)) == 3
