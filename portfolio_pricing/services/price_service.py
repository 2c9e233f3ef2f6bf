"""
Price Resolution Service

Single entry point for market data: cache first, then the provider
registry, writing fresh results back to the cache. In demo mode, when
nothing real is available, synthetic data labelled "Mock Data" is
returned instead of nothing (and never cached).

None of the lookup methods raise for upstream or cache failures; the only
error surfaced to callers is ConfigurationError from update_config().
"""
import asyncio
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Any, Iterable, Mapping
from loguru import logger

from portfolio_pricing.cache.base import CacheBackend
from portfolio_pricing.cache.keys import (
    price_key,
    historical_key,
    historical_range_key,
    search_key,
    normalize_query,
)
from portfolio_pricing.data_providers.adapters.base import (
    AssetPrice,
    HistoricalPricePoint,
    AssetSearchResult,
    MarketDataError,
)
from portfolio_pricing.data_providers.market_config import MarketDataConfig, ProviderSettings
from portfolio_pricing.data_providers.mock_data import MockDataGenerator
from portfolio_pricing.data_providers.registry import ProviderRegistry, RECENT_ERRORS_LIMIT


RECENT_SYMBOLS_LIMIT = 500

HISTORY_RANGES = {
    "7days": 7,
    "30days": 30,
    "90days": 90,
    "1year": 365,
}
DEFAULT_HISTORY_RANGE = "30days"

# Providers only serve daily bars
HISTORY_INTERVALS = ("1day",)
DEFAULT_HISTORY_INTERVAL = "1day"

# Cached payloads that fail to re-hydrate are treated as misses
_DECODE_ERRORS = (KeyError, ValueError, TypeError, ArithmeticError)


class PriceResolutionService:
    """
    Cache + provider façade.

    Usage:
        service = PriceResolutionService(create_registry(), create_cache())
        await service.initialize()
        price = await service.get_current_price("AAPL")
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: CacheBackend,
        config: Optional[MarketDataConfig] = None,
        mock_data: Optional[MockDataGenerator] = None,
    ):
        self.registry = registry
        self.cache = cache
        self._config = config or MarketDataConfig()
        self._mock = mock_data or MockDataGenerator()
        self._recent_symbols: "OrderedDict[str, None]" = OrderedDict()

        # Every registered provider must be addressable by update_config()
        for provider in registry.providers:
            self._config.providers.setdefault(
                provider.name,
                ProviderSettings(enabled=provider.enabled, priority=provider.priority),
            )

    # ==================== Lifecycle ====================

    async def initialize(self) -> None:
        await self.cache.initialize()
        await self.registry.initialize()
        logger.info(f"Price service ready (cache={self.cache.name}, demo_mode={self.demo_mode})")

    async def close(self) -> None:
        await self.registry.close()
        await self.cache.close()
        logger.info("Price service closed")

    # ==================== Configuration ====================

    @property
    def config(self) -> MarketDataConfig:
        return self._config

    @property
    def demo_mode(self) -> bool:
        return self._config.demo_mode

    def update_config(self, partial: Mapping[str, Any]) -> MarketDataConfig:
        """
        Merge a partial configuration and push provider changes to the registry.

        Raises:
            ConfigurationError: malformed update; nothing is changed
        """
        new_config, update = self._config.merge(partial)

        for name, fields in update.get("providers", {}).items():
            api_key = fields.get("api_key")
            self.registry.update_provider_config(
                name,
                enabled=fields.get("enabled"),
                api_key=api_key or None,
                priority=fields.get("priority"),
                clear_api_key="api_key" in fields and not api_key,
            )
            provider = self.registry.get_provider(name)
            if provider is None:
                continue
            provider.update_pacing(
                min_call_interval=fields.get("min_call_interval"),
                batch_size=fields.get("batch_size"),
                batch_delay=fields.get("batch_delay"),
            )
            # Key-gated providers may have refused to enable
            new_config.providers[name].enabled = provider.enabled

        self._config = new_config
        logger.info(f"Market data config updated: {sorted(_describe_update(update))}")
        return new_config

    # ==================== Recently requested symbols ====================

    def _track(self, symbols: Iterable[str]) -> None:
        for symbol in symbols:
            self._recent_symbols.pop(symbol, None)
            self._recent_symbols[symbol] = None
        while len(self._recent_symbols) > RECENT_SYMBOLS_LIMIT:
            self._recent_symbols.popitem(last=False)

    @property
    def tracked_symbols(self) -> list[str]:
        """Recently requested symbols, oldest first."""
        return list(self._recent_symbols)

    # ==================== Current prices ====================

    async def _cached_price(self, key: str) -> Optional[AssetPrice]:
        data = await self.cache.get(key)
        if not data:
            return None
        try:
            return AssetPrice.from_dict(data)
        except _DECODE_ERRORS as e:
            logger.warning(f"Discarding unreadable cached price {key}: {e}")
            return None

    async def get_current_price(
        self,
        symbol: str,
        currency: str = "USD",
        force_refresh: bool = False,
    ) -> Optional[AssetPrice]:
        """Cached or freshly fetched price; synthetic in demo mode; else None."""
        symbol = symbol.strip().upper()
        currency = currency.upper()
        if not symbol:
            return None

        self._track([symbol])
        key = price_key(symbol, currency)

        if not force_refresh:
            cached = await self._cached_price(key)
            if cached:
                return cached

        price = await self.registry.get_current_price(symbol, currency)
        if price is not None:
            await self.cache.set(key, price.to_dict(), self._config.cache.ttl)
            return price

        if self.demo_mode:
            logger.warning(f"No live price for {symbol}, returning mock data")
            return self._mock.price(symbol, currency)
        return None

    async def get_batch_prices(
        self,
        symbols: Iterable[str],
        currency: str = "USD",
        force_refresh: bool = False,
    ) -> dict[str, AssetPrice]:
        """
        Resolve several symbols: cache hits first, the rest through the
        registry's batch path. Unresolved symbols are absent from the
        result (outside demo mode).
        """
        currency = currency.upper()
        requested = list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))
        if not requested:
            return {}

        self._track(requested)
        results: dict[str, AssetPrice] = {}

        if force_refresh:
            misses = requested
        else:
            cached = await asyncio.gather(*[self._cached_price(price_key(s, currency)) for s in requested])
            for symbol, price in zip(requested, cached):
                if price:
                    results[symbol] = price
            misses = [s for s in requested if s not in results]

        if misses:
            fetched = await self.registry.get_batch_prices(misses, currency)
            await asyncio.gather(*[
                self.cache.set(price_key(symbol, currency), price.to_dict(), self._config.cache.ttl)
                for symbol, price in fetched.items()
            ])
            results.update(fetched)

        if self.demo_mode:
            for symbol in requested:
                if symbol not in results:
                    results[symbol] = self._mock.price(symbol, currency)

        logger.debug(f"Batch prices: {len(results)}/{len(requested)} resolved, {len(misses)} fetched")
        return {s: results[s] for s in requested if s in results}

    async def refresh_prices(
        self,
        symbols: Optional[Iterable[str]] = None,
        currency: str = "USD",
    ) -> dict[str, AssetPrice]:
        """Force-refresh prices; defaults to recently requested symbols."""
        symbols = list(symbols) if symbols is not None else self.tracked_symbols
        if not symbols:
            logger.debug("Price refresh skipped: no symbols")
            return {}
        logger.info(f"Refreshing {len(symbols)} prices")
        return await self.get_batch_prices(symbols, currency, force_refresh=True)

    # ==================== Historical prices ====================

    async def _cached_history(self, key: str) -> Optional[list[HistoricalPricePoint]]:
        data = await self.cache.get(key)
        if not data:
            return None
        try:
            return [HistoricalPricePoint.from_dict(d) for d in data]
        except _DECODE_ERRORS as e:
            logger.warning(f"Discarding unreadable cached history {key}: {e}")
            return None

    async def _resolve_history(
        self,
        key: str,
        symbol: str,
        start_date: date,
        end_date: date,
        currency: str,
        force_refresh: bool,
    ) -> list[HistoricalPricePoint]:
        if not force_refresh:
            cached = await self._cached_history(key)
            if cached:
                return cached

        points = await self.registry.get_historical_prices(symbol, start_date, end_date, currency)
        if points:
            await self.cache.set(key, [p.to_dict() for p in points], self._config.cache.historical_ttl)
            return points

        if self.demo_mode:
            logger.warning(f"No live history for {symbol}, returning mock data")
            return self._mock.historical(symbol, start_date, end_date)
        return []

    async def get_historical_prices(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        currency: str = "USD",
        force_refresh: bool = False,
    ) -> list[HistoricalPricePoint]:
        """Daily series between two dates (inclusive), ascending."""
        symbol = symbol.strip().upper()
        currency = currency.upper()
        if not symbol or end_date < start_date:
            return []

        key = historical_range_key(symbol, currency, start_date, end_date)
        return await self._resolve_history(key, symbol, start_date, end_date, currency, force_refresh)

    async def get_price_history(
        self,
        symbol: str,
        interval: str = DEFAULT_HISTORY_INTERVAL,
        range_: str = DEFAULT_HISTORY_RANGE,
        currency: str = "USD",
        force_refresh: bool = False,
    ) -> list[HistoricalPricePoint]:
        """Daily series for a named range ending today (7days, 30days, 90days, 1year)."""
        symbol = symbol.strip().upper()
        if not symbol:
            return []
        if range_ not in HISTORY_RANGES:
            logger.debug(f"Unknown history range {range_}, using {DEFAULT_HISTORY_RANGE}")
            range_ = DEFAULT_HISTORY_RANGE
        if interval not in HISTORY_INTERVALS:
            logger.debug(f"Unsupported history interval {interval}, using {DEFAULT_HISTORY_INTERVAL}")
            interval = DEFAULT_HISTORY_INTERVAL

        end_date = datetime.now(timezone.utc).date()
        start_date = end_date - timedelta(days=HISTORY_RANGES[range_])
        currency = currency.upper()
        key = historical_key(symbol, interval, range_, currency)
        return await self._resolve_history(key, symbol, start_date, end_date, currency, force_refresh)

    # ==================== Search ====================

    async def search_assets(self, query: str, force_refresh: bool = False) -> list[AssetSearchResult]:
        """Merged, de-duplicated search results (at most 10)."""
        if not normalize_query(query):
            return []
        key = search_key(query)

        if not force_refresh:
            data = await self.cache.get(key)
            if data:
                try:
                    return [AssetSearchResult.from_dict(d) for d in data]
                except _DECODE_ERRORS as e:
                    logger.warning(f"Discarding unreadable cached search {key}: {e}")

        results = await self.registry.search_assets(query.strip())
        if results:
            await self.cache.set(key, [r.to_dict() for r in results], self._config.cache.search_ttl)
            return results

        if self.demo_mode:
            return self._mock.search(query, limit=self.registry.max_search_results)
        return []

    # ==================== Operations ====================

    async def clear_cache(self) -> bool:
        """Best-effort; on a non-enumerable tier this only logs a warning."""
        return await self.cache.clear()

    def get_provider_status(self) -> list[dict[str, Any]]:
        return self.registry.get_provider_status()

    def get_recent_errors(self, limit: int = RECENT_ERRORS_LIMIT) -> list[MarketDataError]:
        return self.registry.get_recent_errors(limit)

    def get_cache_stats(self) -> dict[str, Any]:
        return self.cache.get_stats()

    async def health_check(self) -> dict[str, Any]:
        """Cache and provider health. Reports problems, never raises."""
        cache_health = await self.cache.health_check()
        providers = self.registry.get_provider_status()
        healthy = cache_health.get("status") == "healthy" and any(p["enabled"] for p in providers)
        return {
            "status": "healthy" if healthy else "degraded",
            "cache": cache_health,
            "providers": providers,
            "demo_mode": self.demo_mode,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


def _describe_update(update: dict[str, Any]) -> list[str]:
    """Changed setting names, without values (keys stay out of the logs)."""
    names = [f"{name}.{field}" for name, fields in update.get("providers", {}).items() for field in fields]
    names += [f"cache.{field}" for field in update.get("cache", {})]
    if "demo_mode" in update:
        names.append("demo_mode")
    return names
