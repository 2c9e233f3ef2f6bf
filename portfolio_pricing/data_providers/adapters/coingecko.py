"""
CoinGecko Adapter

Cryptocurrency prices from the CoinGecko public API.
Free tier needs no key; a demo key raises the limits.

API Documentation: https://docs.coingecko.com/reference/introduction
"""
from collections import OrderedDict
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional, Iterable

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


COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"

SYMBOL_TO_COIN_ID = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "ADA": "cardano",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "LTC": "litecoin",
    "XRP": "ripple",
    "SOL": "solana",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "DOGE": "dogecoin",
    "SHIB": "shiba-inu",
    "DAI": "dai",
    "USDT": "tether",
    "USDC": "usd-coin",
    "BUSD": "binance-usd",
    "BNB": "binancecoin",
}


def create_coingecko_config(
    api_key: Optional[str] = None,
    enabled: bool = True,
    priority: int = 3,
) -> ProviderConfig:
    """Create configuration for CoinGecko adapter."""
    return ProviderConfig(
        name="coingecko",
        display_name="CoinGecko",
        api_key=api_key or None,
        base_url=COINGECKO_BASE_URL,
        priority=priority,
        enabled=enabled,
        requires_api_key=False,
        min_call_interval=1.0,
        batch_size=10,
        batch_delay=1.0,
        quote_timeout=10.0,
        historical_timeout=15.0,
        search_timeout=10.0,
    )


def get_coin_id(symbol: str) -> str:
    """Map a ticker to a CoinGecko coin id, falling back to the lowercase ticker."""
    upper = symbol.upper()
    return SYMBOL_TO_COIN_ID.get(upper, upper.lower())


def aggregate_daily(
    symbol: str,
    samples: Iterable[tuple[datetime, float, float]],
) -> list[HistoricalPricePoint]:
    """
    Collapse intraday (timestamp, price, volume) samples into one OHLC point per UTC day.

    open = first sample of the day, close = last, high/low = extremes,
    volume = sum of the day's samples.
    """
    days: "OrderedDict[date, list[tuple[datetime, float, float]]]" = OrderedDict()
    for sample in sorted(samples, key=lambda s: s[0]):
        days.setdefault(sample[0].date(), []).append(sample)

    points = []
    for day, rows in days.items():
        prices = [to_decimal(price) for _, price, _ in rows]
        volume = sum(vol or 0 for _, _, vol in rows)
        points.append(HistoricalPricePoint(
            symbol=symbol,
            date=day,
            open=prices[0],
            high=max(prices),
            low=min(prices),
            close=prices[-1],
            volume=int(volume),
        ))
    return points


class CoinGeckoAdapter(BaseAdapter):
    """
    CoinGecko data provider adapter.

    Features:
    - Spot prices with 24h change, volume and market cap
    - Historical range data, aggregated to daily OHLC
    - Coin search

    Limitations:
    - Roughly one call per second on the free tier
    - Coin ids differ from tickers (static map + lowercase fallback)
    """

    kind = ProviderKind.CRYPTO
    accepts_api_key = True

    def _params(self, **params) -> dict:
        if self.config.api_key:
            params["x_cg_demo_api_key"] = self.config.api_key
        return params

    async def _fetch_current_price(self, symbol: str, currency: str) -> Optional[AssetPrice]:
        coin_id = get_coin_id(symbol)
        vs = currency.lower()
        data = await self._get_json(
            f"{self.config.base_url}/simple/price",
            params=self._params(
                ids=coin_id,
                vs_currencies=vs,
                include_24hr_change="true",
                include_24hr_vol="true",
                include_market_cap="true",
            ),
            timeout=self.config.quote_timeout,
        )

        entry = (data or {}).get(coin_id) or {}
        price = to_decimal(entry.get(vs))
        if not price:
            return None

        volume = entry.get(f"{vs}_24h_vol")
        return AssetPrice(
            symbol=symbol,
            price=price,
            change_percent_24h=to_decimal(entry.get(f"{vs}_24h_change")),
            volume=int(volume) if volume is not None else None,
            market_cap=to_decimal(entry.get(f"{vs}_market_cap")),
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
        start_ts = int(datetime.combine(start_date, time.min, tzinfo=timezone.utc).timestamp())
        end_ts = int(datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc).timestamp()) - 1
        data = await self._get_json(
            f"{self.config.base_url}/coins/{get_coin_id(symbol)}/market_chart/range",
            params=self._params(vs_currency=currency.lower(), **{"from": start_ts, "to": end_ts}),
            timeout=self.config.historical_timeout,
        )

        prices = (data or {}).get("prices") or []
        volumes = (data or {}).get("total_volumes") or []

        samples = []
        for i, (ts_ms, price) in enumerate(prices):
            if price is None:
                continue
            volume = volumes[i][1] if i < len(volumes) and volumes[i][1] is not None else 0
            samples.append((datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc), price, volume))

        return [p for p in aggregate_daily(symbol, samples) if start_date <= p.date <= end_date]

    async def _search(self, query: str) -> list[AssetSearchResult]:
        data = await self._get_json(
            f"{self.config.base_url}/search",
            params=self._params(query=query),
            timeout=self.config.search_timeout,
        )

        results = []
        for coin in (data or {}).get("coins") or []:
            if not coin.get("symbol"):
                continue
            results.append(AssetSearchResult(
                symbol=coin["symbol"].upper(),
                name=coin.get("name") or coin["symbol"].upper(),
                asset_class=AssetClass.CRYPTO,
                currency="USD",
            ))
        return results

    def _health_check_symbol(self) -> str:
        return "BTC"
