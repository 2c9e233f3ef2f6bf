"""
Provider Registry

Holds the market data adapters ordered by priority and applies the
fallback policy:
- current price / historical: first success wins, later providers untouched
- search: merge across providers, de-duplicate, cap at the result limit
- batch: each provider only sees symbols still unresolved by earlier ones

Provider failures are recorded in a bounded error log and never raised.
"""
import asyncio
from collections import deque
from datetime import date
from typing import Optional, Any, Awaitable, Callable, Iterable
from loguru import logger

from portfolio_pricing.data_providers.adapters.base import (
    BaseAdapter,
    AssetPrice,
    HistoricalPricePoint,
    AssetSearchResult,
    MarketDataError,
    FetchResult,
)


MAX_ERROR_LOG = 100
RECENT_ERRORS_LIMIT = 20
MAX_SEARCH_RESULTS = 10


class ProviderRegistry:
    """
    Ordered collection of market data providers.

    Usage:
        registry = ProviderRegistry()
        registry.register(YahooFinanceAdapter(create_yahoo_finance_config()))
        price = await registry.get_current_price("AAPL")
    """

    def __init__(self, max_errors: int = MAX_ERROR_LOG, max_search_results: int = MAX_SEARCH_RESULTS):
        self._providers: list[BaseAdapter] = []
        self._errors: deque[MarketDataError] = deque(maxlen=max_errors)
        self.max_search_results = max_search_results

    # ==================== Registration ====================

    def register(self, provider: BaseAdapter) -> None:
        """Add a provider; ties in priority keep registration order."""
        if self.get_provider(provider.name):
            logger.warning(f"Provider {provider.name} already registered, replacing")
            self.unregister(provider.name)
        self._providers.append(provider)
        self._sort()
        logger.info(f"Registered provider: {provider.name} (priority={provider.priority}, enabled={provider.enabled})")

    def unregister(self, name: str) -> bool:
        provider = self.get_provider(name)
        if not provider:
            return False
        self._providers.remove(provider)
        logger.info(f"Unregistered provider: {name}")
        return True

    def get_provider(self, name: str) -> Optional[BaseAdapter]:
        for provider in self._providers:
            if provider.name == name:
                return provider
        return None

    @property
    def providers(self) -> list[BaseAdapter]:
        return list(self._providers)

    @property
    def enabled_providers(self) -> list[BaseAdapter]:
        return [p for p in self._providers if p.enabled]

    def _sort(self) -> None:
        # list.sort is stable
        self._providers.sort(key=lambda p: p.priority)

    # ==================== Error log ====================

    def _record_error(self, error: MarketDataError) -> None:
        self._errors.append(error)

    async def _call(
        self,
        provider: BaseAdapter,
        subject: str,
        call: Callable[[], Awaitable[FetchResult]],
    ) -> FetchResult:
        """Invoke one provider, logging any failure it reports or raises."""
        try:
            result = await call()
        except Exception as e:
            # Adapters should not raise; anything that does is still just a provider failure
            logger.error(f"Provider {provider.name} raised for {subject}: {e}")
            result = FetchResult(error=MarketDataError(
                provider=provider.name,
                symbol=subject,
                error=str(e) or e.__class__.__name__,
            ))

        if result.error:
            self._record_error(result.error)
        return result

    def get_recent_errors(self, limit: int = RECENT_ERRORS_LIMIT) -> list[MarketDataError]:
        """Most recent errors, oldest first."""
        if limit <= 0:
            return []
        return list(self._errors)[-limit:]

    def clear_errors(self) -> None:
        self._errors.clear()

    # ==================== Lookups ====================

    async def get_current_price(self, symbol: str, currency: str = "USD") -> Optional[AssetPrice]:
        """First non-empty price in priority order, or None."""
        symbol = symbol.upper()
        for provider in self.enabled_providers:
            result = await self._call(provider, symbol, lambda p=provider: p.get_current_price(symbol, currency))
            if result.value is not None:
                logger.debug(f"Price for {symbol} from {provider.name}")
                return result.value

        logger.warning(f"No provider returned a price for {symbol}")
        return None

    async def get_historical_prices(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        currency: str = "USD",
    ) -> list[HistoricalPricePoint]:
        """First non-empty series in priority order, or []."""
        symbol = symbol.upper()
        for provider in self.enabled_providers:
            result = await self._call(
                provider,
                symbol,
                lambda p=provider: p.get_historical_prices(symbol, start_date, end_date, currency),
            )
            if result.value:
                logger.debug(f"Historical prices for {symbol} from {provider.name} ({len(result.value)} points)")
                return result.value

        logger.warning(f"No provider returned historical prices for {symbol}")
        return []

    async def search_assets(self, query: str) -> list[AssetSearchResult]:
        """
        Merge search results across providers in priority order.

        Duplicates by (symbol, asset class) keep the first seen. Providers
        are asked one at a time; once the limit is reached no further
        provider is queried.
        """
        merged: list[AssetSearchResult] = []
        seen: set = set()

        for provider in self.enabled_providers:
            if len(merged) >= self.max_search_results:
                break
            result = await self._call(provider, query, lambda p=provider: p.search_assets(query))
            for item in result.value or []:
                if item.identity in seen:
                    continue
                seen.add(item.identity)
                merged.append(item)
                if len(merged) >= self.max_search_results:
                    break

        return merged

    async def get_batch_prices(self, symbols: Iterable[str], currency: str = "USD") -> dict[str, AssetPrice]:
        """
        Resolve many symbols, provider by provider.

        Each provider gets the still-unresolved symbols in chunks of its
        batch_size; a chunk is fetched concurrently, then the provider's
        batch_delay is slept before its next chunk.
        """
        requested = list(dict.fromkeys(s.upper() for s in symbols))
        resolved: dict[str, AssetPrice] = {}

        for provider in self.enabled_providers:
            pending = [s for s in requested if s not in resolved]
            if not pending:
                break

            batch_size = max(1, provider.config.batch_size)
            chunks = [pending[i:i + batch_size] for i in range(0, len(pending), batch_size)]
            logger.debug(f"Batch via {provider.name}: {len(pending)} symbols in {len(chunks)} chunks")

            for index, chunk in enumerate(chunks):
                results = await asyncio.gather(*[
                    self._call(provider, symbol, lambda p=provider, s=symbol: p.get_current_price(s, currency))
                    for symbol in chunk
                ])
                for symbol, result in zip(chunk, results):
                    if result.value is not None:
                        resolved[symbol] = result.value

                if index < len(chunks) - 1 and provider.config.batch_delay > 0:
                    await asyncio.sleep(provider.config.batch_delay)

        missing = [s for s in requested if s not in resolved]
        if missing:
            logger.warning(f"Batch left {len(missing)} symbols unresolved: {', '.join(missing)}")
        return resolved

    # ==================== Configuration ====================

    def update_provider_config(
        self,
        name: str,
        enabled: Optional[bool] = None,
        api_key: Optional[str] = None,
        priority: Optional[int] = None,
        clear_api_key: bool = False,
    ) -> bool:
        """
        Toggle, re-key or re-prioritise a provider.

        Returns False (and logs) for an unknown provider name.
        """
        provider = self.get_provider(name)
        if not provider:
            logger.warning(f"Cannot update unknown provider: {name}")
            return False

        if api_key is not None or clear_api_key:
            if provider.accepts_api_key:
                provider.update_api_key(api_key)
            else:
                logger.warning(f"Provider {name} does not use an API key, ignoring")

        if enabled is not None:
            if enabled and provider.config.requires_api_key and not provider.config.api_key:
                logger.warning(f"Provider {name} requires an API key, keeping it disabled")
            else:
                provider.enabled = enabled

        if priority is not None:
            provider.priority = priority

        self._sort()
        logger.info(f"Provider {name} updated: enabled={provider.enabled}, priority={provider.priority}")
        return True

    def get_provider_status(self) -> list[dict[str, Any]]:
        return [provider.describe() for provider in self._providers]

    # ==================== Lifecycle ====================

    async def initialize(self) -> None:
        await asyncio.gather(*[p.initialize() for p in self._providers])

    async def close(self) -> None:
        await asyncio.gather(*[p.close() for p in self._providers])
