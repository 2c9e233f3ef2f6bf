"""
Alpha Vantage Adapter

Provides access to Alpha Vantage API for market data.
Free tier with 5 requests/minute, API key required.

API Documentation: https://www.alphavantage.co/documentation/
"""
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Optional, Any

from portfolio_pricing.data_providers.adapters.base import (
    BaseAdapter,
    ProviderConfig,
    ProviderKind,
    AssetClass,
    AssetPrice,
    HistoricalPricePoint,
    AssetSearchResult,
    ProviderError,
    RateLimitError,
    DataNotAvailableError,
    to_decimal,
)


ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"

TYPE_MAP = {
    "Equity": AssetClass.STOCK,
    "ETF": AssetClass.ETF,
    "Mutual Fund": AssetClass.MUTUAL_FUND,
    "Cryptocurrency": AssetClass.CRYPTO,
}


def create_alpha_vantage_config(
    api_key: Optional[str] = None,
    enabled: Optional[bool] = None,
    priority: int = 2,
) -> ProviderConfig:
    """Create configuration for Alpha Vantage adapter. Enabled iff a key is set unless overridden."""
    return ProviderConfig(
        name="alpha_vantage",
        display_name="Alpha Vantage",
        api_key=api_key or None,
        base_url=ALPHA_VANTAGE_BASE_URL,
        priority=priority,
        enabled=bool(api_key) if enabled is None else (enabled and bool(api_key)),
        requires_api_key=True,
        min_call_interval=12.0,  # 5 calls/minute on the free tier
        batch_size=5,
        batch_delay=12.0,
        quote_timeout=10.0,
        historical_timeout=15.0,
        search_timeout=10.0,
    )


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


class AlphaVantageAdapter(BaseAdapter):
    """
    Alpha Vantage data provider adapter.

    Features:
    - Stock quotes (GLOBAL_QUOTE)
    - Daily historical data (TIME_SERIES_DAILY)
    - Symbol search (SYMBOL_SEARCH)

    Limitations:
    - Strict rate limiting (5 req/min free)
    - One symbol per request

    Usage:
        config = create_alpha_vantage_config("your_api_key")
        adapter = AlphaVantageAdapter(config)
        await adapter.initialize()

        result = await adapter.get_current_price("AAPL")
    """

    kind = ProviderKind.EQUITIES
    accepts_api_key = True

    async def _query(self, params: dict[str, Any], timeout: float) -> dict:
        """Call the query endpoint and classify Alpha Vantage's in-body errors."""
        params = {**params, "apikey": self.config.api_key}
        data = await self._get_json(self.config.base_url, params=params, timeout=timeout)

        if not isinstance(data, dict):
            raise ProviderError(self.name, "Unexpected response body")
        # Rate limit responses come back as 200 with a note
        if "Note" in data or "Information" in data:
            raise RateLimitError(self.name, retry_after=self.config.min_call_interval)
        return data

    async def _fetch_current_price(self, symbol: str, currency: str) -> Optional[AssetPrice]:
        data = await self._query(
            {"function": "GLOBAL_QUOTE", "symbol": symbol},
            timeout=self.config.quote_timeout,
        )

        if "Error Message" in data:
            raise DataNotAvailableError(self.name, symbol, "quote")

        quote = data.get("Global Quote") or {}
        if not quote.get("05. price"):
            return None

        change_percent = quote.get("10. change percent")
        if isinstance(change_percent, str):
            change_percent = change_percent.rstrip("%")

        return AssetPrice(
            symbol=quote.get("01. symbol") or symbol,
            price=Decimal(quote["05. price"]),
            change_24h=to_decimal(quote.get("09. change")),
            change_percent_24h=to_decimal(change_percent),
            volume=_parse_int(quote.get("06. volume")),
            last_updated=datetime.now(timezone.utc),
            source=self.display_name,
            currency=currency,
        )

    async def _fetch_historical_prices(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        currency: str,
    ) -> list[HistoricalPricePoint]:
        data = await self._query(
            {"function": "TIME_SERIES_DAILY", "symbol": symbol, "outputsize": "full"},
            timeout=self.config.historical_timeout,
        )

        if "Error Message" in data:
            raise DataNotAvailableError(self.name, symbol, "historical")

        time_series = data.get("Time Series (Daily)")
        if not time_series:
            raise ProviderError(self.name, f"No time series data for {symbol}")

        start, end = start_date.isoformat(), end_date.isoformat()
        points = []
        for day, bar in time_series.items():
            if not (start <= day <= end):
                continue
            points.append(HistoricalPricePoint(
                symbol=symbol,
                date=date.fromisoformat(day),
                open=Decimal(bar["1. open"]),
                high=Decimal(bar["2. high"]),
                low=Decimal(bar["3. low"]),
                close=Decimal(bar["4. close"]),
                volume=_parse_int(bar.get("5. volume")),
            ))

        points.sort(key=lambda p: p.date)
        return points

    async def _search(self, query: str) -> list[AssetSearchResult]:
        data = await self._query(
            {"function": "SYMBOL_SEARCH", "keywords": query},
            timeout=self.config.search_timeout,
        )

        results = []
        for match in data.get("bestMatches") or []:
            symbol = match.get("1. symbol")
            if not symbol:
                continue
            results.append(AssetSearchResult(
                symbol=symbol,
                name=match.get("2. name") or symbol,
                asset_class=TYPE_MAP.get(match.get("3. type"), AssetClass.STOCK),
                exchange=match.get("4. region"),
                currency=match.get("8. currency"),
            ))
        return results

    def _health_check_symbol(self) -> str:
        return "IBM"
