"""
Synthetic market data for demo mode.

Used only when every provider has failed and demo mode is on. Every price
produced here carries source="Mock Data" so callers can tell it apart.
"""
import random
import zlib
from datetime import datetime, date, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from portfolio_pricing.data_providers.adapters.base import (
    MOCK_SOURCE,
    AssetClass,
    AssetPrice,
    HistoricalPricePoint,
    AssetSearchResult,
)
from portfolio_pricing.data_providers.adapters.coingecko import SYMBOL_TO_COIN_ID


CRYPTO_BASE_PRICES = {
    "BTC": 45000.0,
    "ETH": 3000.0,
}
DEFAULT_CRYPTO_BASE = 1.0
STOCK_PRICE_RANGE = (100.0, 500.0)

# Max relative move per step of the walk
MAX_STEP = 0.02

DEMO_CATALOGUE = [
    AssetSearchResult("AAPL", "Apple Inc.", AssetClass.STOCK, "NASDAQ", "USD"),
    AssetSearchResult("MSFT", "Microsoft Corporation", AssetClass.STOCK, "NASDAQ", "USD"),
    AssetSearchResult("GOOGL", "Alphabet Inc.", AssetClass.STOCK, "NASDAQ", "USD"),
    AssetSearchResult("AMZN", "Amazon.com, Inc.", AssetClass.STOCK, "NASDAQ", "USD"),
    AssetSearchResult("TSLA", "Tesla, Inc.", AssetClass.STOCK, "NASDAQ", "USD"),
    AssetSearchResult("NVDA", "NVIDIA Corporation", AssetClass.STOCK, "NASDAQ", "USD"),
    AssetSearchResult("SPY", "SPDR S&P 500 ETF Trust", AssetClass.ETF, "NYSE Arca", "USD"),
    AssetSearchResult("VTI", "Vanguard Total Stock Market ETF", AssetClass.ETF, "NYSE Arca", "USD"),
    AssetSearchResult("VFIAX", "Vanguard 500 Index Fund Admiral Shares", AssetClass.MUTUAL_FUND, None, "USD"),
    AssetSearchResult("BTC", "Bitcoin", AssetClass.CRYPTO, None, "USD"),
    AssetSearchResult("ETH", "Ethereum", AssetClass.CRYPTO, None, "USD"),
    AssetSearchResult("SOL", "Solana", AssetClass.CRYPTO, None, "USD"),
]


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def is_crypto_symbol(symbol: str) -> bool:
    return symbol.upper() in SYMBOL_TO_COIN_ID


class MockDataGenerator:
    """
    Bounded random walk around a per-symbol base price.

    The base price is derived from the symbol alone, so the same ticker
    stays in the same neighbourhood across calls.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    @staticmethod
    def base_price(symbol: str) -> float:
        symbol = symbol.upper()
        if is_crypto_symbol(symbol):
            return CRYPTO_BASE_PRICES.get(symbol, DEFAULT_CRYPTO_BASE)
        low, high = STOCK_PRICE_RANGE
        seeded = random.Random(zlib.crc32(symbol.encode()))
        return low + seeded.random() * (high - low)

    def _step(self, value: float) -> float:
        return value * (1 + self._rng.uniform(-MAX_STEP, MAX_STEP))

    def price(self, symbol: str, currency: str = "USD") -> AssetPrice:
        symbol = symbol.upper()
        base = self.base_price(symbol)
        current = self._step(base)
        change = current - base
        volume_cap = 1_000_000 if is_crypto_symbol(symbol) else 10_000_000

        return AssetPrice(
            symbol=symbol,
            price=_money(current),
            change_24h=_money(change),
            change_percent_24h=_money(change / base * 100),
            volume=self._rng.randint(0, volume_cap),
            last_updated=datetime.now(timezone.utc),
            source=MOCK_SOURCE,
            currency=currency.upper(),
        )

    def historical(self, symbol: str, start_date: date, end_date: date) -> list[HistoricalPricePoint]:
        """One synthetic point per calendar day, inclusive of both ends."""
        symbol = symbol.upper()
        if end_date < start_date:
            return []

        points = []
        close = self.base_price(symbol)
        day = start_date
        while day <= end_date:
            open_ = close
            close = self._step(open_)
            high = max(open_, close) * (1 + self._rng.uniform(0, MAX_STEP / 2))
            low = min(open_, close) * (1 - self._rng.uniform(0, MAX_STEP / 2))
            points.append(HistoricalPricePoint(
                symbol=symbol,
                date=day,
                open=_money(open_),
                high=_money(high),
                low=_money(low),
                close=_money(close),
                volume=self._rng.randint(0, 10_000_000),
            ))
            day += timedelta(days=1)
        return points

    @staticmethod
    def search(query: str, limit: int = 10) -> list[AssetSearchResult]:
        needle = query.strip().lower()
        if not needle:
            return []
        return [
            item for item in DEMO_CATALOGUE
            if needle in item.symbol.lower() or needle in item.name.lower()
        ][:limit]
