"""
Provider Initialization Module

Builds the market data adapters from configuration and registers them
with a ProviderRegistry.
"""
from typing import Optional, Callable
from loguru import logger

from portfolio_pricing.data_providers.adapters.base import BaseAdapter, ProviderConfig
from portfolio_pricing.data_providers.adapters.yahoo_finance import YahooFinanceAdapter, create_yahoo_finance_config
from portfolio_pricing.data_providers.adapters.alpha_vantage import AlphaVantageAdapter, create_alpha_vantage_config
from portfolio_pricing.data_providers.adapters.coingecko import CoinGeckoAdapter, create_coingecko_config
from portfolio_pricing.data_providers.market_config import MarketDataConfig, ProviderSettings
from portfolio_pricing.data_providers.registry import ProviderRegistry


# name -> (adapter class, config factory)
PROVIDER_FACTORIES: dict[str, tuple[type[BaseAdapter], Callable[..., ProviderConfig]]] = {
    "yahoo_finance": (YahooFinanceAdapter, lambda s: create_yahoo_finance_config()),
    "alpha_vantage": (AlphaVantageAdapter, lambda s: create_alpha_vantage_config(api_key=s.api_key)),
    "coingecko": (CoinGeckoAdapter, lambda s: create_coingecko_config(api_key=s.api_key)),
}


def apply_provider_settings(adapter: BaseAdapter, overrides: ProviderSettings) -> None:
    """Apply configured overrides on top of an adapter's defaults."""
    if overrides.priority is not None:
        adapter.priority = overrides.priority
    if overrides.enabled is not None:
        if overrides.enabled and adapter.config.requires_api_key and not adapter.config.api_key:
            logger.warning(f"{adapter.display_name} enabled without an API key, leaving it disabled")
        else:
            adapter.enabled = overrides.enabled
    adapter.update_pacing(
        min_call_interval=overrides.min_call_interval,
        batch_size=overrides.batch_size,
        batch_delay=overrides.batch_delay,
    )


def create_provider(name: str, overrides: Optional[ProviderSettings] = None) -> BaseAdapter:
    """Instantiate a single adapter by name."""
    if name not in PROVIDER_FACTORIES:
        raise KeyError(f"Unknown provider: {name}")

    overrides = overrides or ProviderSettings()
    adapter_cls, make_config = PROVIDER_FACTORIES[name]
    adapter = adapter_cls(make_config(overrides))
    apply_provider_settings(adapter, overrides)
    return adapter


def create_registry(config: Optional[MarketDataConfig] = None) -> ProviderRegistry:
    """
    Build a registry with every known provider.

    Disabled providers are still registered so they can be switched on at
    runtime through update_provider_config().
    """
    config = config or MarketDataConfig.from_settings()
    registry = ProviderRegistry()

    for name in PROVIDER_FACTORIES:
        adapter = create_provider(name, config.providers.get(name))
        registry.register(adapter)

    enabled = [p.name for p in registry.enabled_providers]
    logger.info(f"Market data providers ready: {', '.join(enabled) or 'none enabled'}")
    return registry
