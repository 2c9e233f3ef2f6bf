"""
Yahoo Finance Adapter

Uses the public Yahoo Finance chart and search endpoints.
Free, no API key required. Prices come in the listing's native currency;
requests for any other currency are left to the next provider.
"""
from datetime import datetime, date, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, Any
from loguru import logger

from portfolio_pricing.data_providers.adapters.base import (
    BaseAdapter,
    ProviderConfig,
    ProviderKind,
    AssetClass,
    AssetPrice,
    HistoricalPricePoint,
    AssetSearchResult,
    to_decimal,
)


YAHOO_CHART_BASE_URL = "https://query1.finance.yahoo.com"
YAHOO_SEARCH_BASE_URL = "https://query2.finance.yahoo.com"

QUOTE_TYPE_MAP = {
    "EQUITY": AssetClass.STOCK,
    "ETF": AssetClass.ETF,
    "MUTUALFUND": AssetClass.MUTUAL_FUND,
    "CRYPTOCURRENCY": AssetClass.CRYPTO,
}


def create_yahoo_finance_config(enabled: bool = True, priority: int = 1) -> ProviderConfig:
    """Create configuration for Yahoo Finance adapter."""
    return ProviderConfig(
        name="yahoo_finance",
        display_name="Yahoo Finance",
        base_url=YAHOO_CHART_BASE_URL,
        priority=priority,
        enabled=enabled,
        requires_api_key=False,
        min_call_interval=0.5,
        batch_size=2,
        batch_delay=1.0,
        quote_timeout=10.0,
        historical_timeout=15.0,
        search_timeout=10.0,
    )


def map_quote_type(quote_type: Optional[str]) -> AssetClass:
    return QUOTE_TYPE_MAP.get(quote_type or "", AssetClass.STOCK)


class YahooFinanceAdapter(BaseAdapter):
    """
    Yahoo Finance data provider adapter.

    Features:
    - Stock, ETF and fund quotes (chart meta)
    - Daily historical bars
    - Symbol search across asset types

    Limitations:
    - Unofficial API, may change or throttle without notice
    """

    kind = ProviderKind.EQUITIES

    def _get_headers(self) -> dict[str, str]:
        # Yahoo rejects requests without a browser-like agent
        return {
            "Accept": "application/json",
            "User-Agent": "Mozilla/5.0 (compatible; portfolio-pricing)",
        }

    @staticmethod
    def _first_chart_result(data: Any) -> Optional[dict]:
        chart = (data or {}).get("chart") or {}
        results = chart.get("result") or []
        return results[0] if results else None

    @staticmethod
    def _other_currency(result: dict, currency: str) -> Optional[str]:
        """The listing currency when it differs from the requested one."""
        native = ((result.get("meta") or {}).get("currency") or "").upper()
        if native and native != currency.upper():
            return native
        return None

    async def _fetch_current_price(self, symbol: str, currency: str) -> Optional[AssetPrice]:
        params = {
            "region": "US",
            "lang": "en-US",
            "includePrePost": "false",
            "interval": "1m",
            "range": "1d",
        }
        data = await self._get_json(
            f"{self.config.base_url}/v8/finance/chart/{symbol}",
            params=params,
            timeout=self.config.quote_timeout,
        )

        result = self._first_chart_result(data)
        if not result:
            return None

        native = self._other_currency(result, currency)
        if native:
            logger.debug(f"Yahoo quotes {symbol} in {native}, not {currency}")
            return None

        meta = result.get("meta") or {}
        price = to_decimal(meta.get("regularMarketPrice"))
        if not price:
            return None

        previous_close = to_decimal(meta.get("previousClose") or meta.get("chartPreviousClose"))
        change = change_percent = None
        if previous_close:
            change = price - previous_close
            change_percent = change / previous_close * Decimal("100")

        volume = meta.get("regularMarketVolume")
        return AssetPrice(
            symbol=meta.get("symbol") or symbol,
            price=price,
            change_24h=change,
            change_percent_24h=change_percent,
            volume=int(volume) if volume is not None else None,
            market_cap=to_decimal(meta.get("marketCap")),
            last_updated=datetime.now(timezone.utc),
            source=self.display_name,
            currency=meta.get("currency") or currency,
        )

    async def _fetch_historical_prices(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        currency: str,
    ) -> list[HistoricalPricePoint]:
        period1 = int(datetime.combine(start_date, time.min, tzinfo=timezone.utc).timestamp())
        period2 = int(datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc).timestamp())
        params = {
            "period1": period1,
            "period2": period2,
            "interval": "1d",
            "includePrePost": "false",
        }
        data = await self._get_json(
            f"{self.config.base_url}/v8/finance/chart/{symbol}",
            params=params,
            timeout=self.config.historical_timeout,
        )

        result = self._first_chart_result(data)
        if not result:
            return []

        native = self._other_currency(result, currency)
        if native:
            logger.debug(f"Yahoo history for {symbol} is in {native}, not {currency}")
            return []

        timestamps = result.get("timestamp") or []
        quotes = ((result.get("indicators") or {}).get("quote") or [{}])[0]
        opens = quotes.get("open") or []
        highs = quotes.get("high") or []
        lows = quotes.get("low") or []
        closes = quotes.get("close") or []
        volumes = quotes.get("volume") or []

        def _at(values: list, i: int) -> Any:
            return values[i] if i < len(values) else None

        points: list[HistoricalPricePoint] = []
        for i, ts in enumerate(timestamps):
            o, h, l, c = _at(opens, i), _at(highs, i), _at(lows, i), _at(closes, i)
            # Skip non-trading rows
            if o is None or h is None or l is None or c is None:
                continue
            day = datetime.fromtimestamp(ts, tz=timezone.utc).date()
            if day < start_date or day > end_date:
                continue
            volume = _at(volumes, i)
            points.append(HistoricalPricePoint(
                symbol=symbol,
                date=day,
                open=to_decimal(o),
                high=to_decimal(h),
                low=to_decimal(l),
                close=to_decimal(c),
                volume=int(volume) if volume is not None else None,
            ))

        points.sort(key=lambda p: p.date)
        return points

    async def _search(self, query: str) -> list[AssetSearchResult]:
        params = {
            "q": query,
            "quotesCount": self.config.max_search_results,
            "newsCount": 0,
            "listsCount": 0,
            "enableFuzzyQuery": "false",
            "quotesQueryId": "tss_match_phrase_query",
        }
        data = await self._get_json(
            f"{YAHOO_SEARCH_BASE_URL}/v1/finance/search",
            params=params,
            timeout=self.config.search_timeout,
        )

        results = []
        for quote in (data or {}).get("quotes") or []:
            if not quote.get("symbol") or not quote.get("shortname"):
                continue
            results.append(AssetSearchResult(
                symbol=quote["symbol"],
                name=quote.get("shortname") or quote.get("longname"),
                asset_class=map_quote_type(quote.get("quoteType")),
                exchange=quote.get("exchange"),
                currency=quote.get("currency"),
            ))
        return results
