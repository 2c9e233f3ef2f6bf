"""
Portfolio Pricing - Test Configuration
Shared fixtures and test configuration.
"""
import asyncio
import os
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
import pytest

# Set test environment before settings are loaded
os.environ["APP_ENV"] = "testing"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["DEMO_MODE"] = "false"
os.environ["PRICE_REFRESH_ENABLED"] = "false"
os.environ["LOG_DIR"] = ""

from portfolio_pricing.cache.memory import MemoryCache
from portfolio_pricing.data_providers.adapters.base import (
    BaseAdapter,
    ProviderConfig,
    ProviderKind,
    AssetClass,
    AssetPrice,
    HistoricalPricePoint,
    AssetSearchResult,
)
from portfolio_pricing.data_providers.market_config import MarketDataConfig
from portfolio_pricing.data_providers.registry import ProviderRegistry
from portfolio_pricing.services.price_service import PriceResolutionService


# =========================
# Fake Providers
# =========================

class FakeProvider(BaseAdapter):
    """In-memory provider that records every upstream call."""

    def __init__(
        self,
        name: str,
        priority: int = 1,
        prices: Optional[dict] = None,
        history: Optional[dict] = None,
        search: Optional[list] = None,
        fail_with: Optional[Exception] = None,
        enabled: bool = True,
        kind: ProviderKind = ProviderKind.EQUITIES,
        batch_size: int = 2,
        batch_delay: float = 0.0,
        requires_api_key: bool = False,
        api_key: Optional[str] = None,
    ):
        super().__init__(ProviderConfig(
            name=name,
            display_name=name.replace("_", " ").title(),
            priority=priority,
            enabled=enabled,
            requires_api_key=requires_api_key,
            api_key=api_key,
            min_call_interval=0.0,
            batch_size=batch_size,
            batch_delay=batch_delay,
        ))
        self.kind = kind
        self.accepts_api_key = requires_api_key
        self.prices = {k.upper(): Decimal(str(v)) for k, v in (prices or {}).items()}
        self.history = history or {}
        self.search_results = search or []
        self.fail_with = fail_with
        self.calls: dict[str, list] = {"price": [], "historical": [], "search": []}

    async def _fetch_current_price(self, symbol, currency):
        self.calls["price"].append(symbol)
        if self.fail_with:
            raise self.fail_with
        if symbol not in self.prices:
            return None
        return AssetPrice(
            symbol=symbol,
            price=self.prices[symbol],
            source=self.display_name,
            currency=currency,
        )

    async def _fetch_historical_prices(self, symbol, start_date, end_date, currency):
        self.calls["historical"].append(symbol)
        if self.fail_with:
            raise self.fail_with
        return [p for p in self.history.get(symbol, []) if start_date <= p.date <= end_date]

    async def _search(self, query):
        self.calls["search"].append(query)
        if self.fail_with:
            raise self.fail_with
        return list(self.search_results)


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Subset of redis.asyncio.Redis used by RedisCache."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def scan_iter(self, match=None, count=None):
        prefix = (match or "*").rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key

    async def aclose(self):
        pass


# =========================
# Data Fixtures
# =========================

def make_history(symbol: str, start: date, days: int, base: float = 100.0) -> list[HistoricalPricePoint]:
    points = []
    for i in range(days):
        price = Decimal(str(base + i))
        points.append(HistoricalPricePoint(
            symbol=symbol,
            date=start + timedelta(days=i),
            open=price,
            high=price + 2,
            low=price - 2,
            close=price + 1,
            volume=1000 + i,
        ))
    return points


@pytest.fixture
def make_provider():
    """Factory for fake providers."""
    def _make(name: str = "primary", **kwargs) -> FakeProvider:
        return FakeProvider(name, **kwargs)
    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock) -> MemoryCache:
    return MemoryCache(clock=clock)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def sample_search_results() -> list[AssetSearchResult]:
    return [
        AssetSearchResult("AAPL", "Apple Inc.", AssetClass.STOCK, "NMS", "USD"),
        AssetSearchResult("AAPL.MX", "Apple Inc.", AssetClass.STOCK, "MEX", "MXN"),
    ]


@pytest.fixture
def equities_a(make_provider):
    """Priority 1 equities provider that times out."""
    return make_provider("equities_a", priority=1, fail_with=asyncio.TimeoutError("request timed out"))


@pytest.fixture
def equities_b(make_provider):
    """Priority 2 equities provider with an AAPL quote."""
    return make_provider(
        "equities_b",
        priority=2,
        prices={"AAPL": "150.25", "MSFT": "410.10", "GOOGL": "140.00"},
        history={"AAPL": make_history("AAPL", date(2024, 1, 1), 10)},
    )


@pytest.fixture
def crypto(make_provider):
    return make_provider("crypto", priority=3, kind=ProviderKind.CRYPTO, prices={"ETH": "3100.5"})


@pytest.fixture
def registry(equities_a, equities_b, crypto) -> ProviderRegistry:
    registry = ProviderRegistry()
    for provider in (equities_a, equities_b, crypto):
        registry.register(provider)
    return registry


@pytest.fixture
def price_service(registry, memory_cache) -> PriceResolutionService:
    return PriceResolutionService(registry, memory_cache, MarketDataConfig())


@pytest.fixture
def demo_service(registry, memory_cache) -> PriceResolutionService:
    return PriceResolutionService(registry, memory_cache, MarketDataConfig(demo_mode=True))


@pytest.fixture
def history_factory():
    return make_history
