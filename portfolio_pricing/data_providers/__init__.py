"""
Data Providers Package

Market data adapters, pacing, the priority registry and the runtime
configuration that drives them.
"""
from portfolio_pricing.data_providers.rate_limiter import RateLimiter, RateLimitConfig
from portfolio_pricing.data_providers.registry import ProviderRegistry
from portfolio_pricing.data_providers.market_config import MarketDataConfig, ProviderSettings, CacheSettings
from portfolio_pricing.data_providers.mock_data import MockDataGenerator
from portfolio_pricing.data_providers.provider_init import create_registry, create_provider

__all__ = [
    "RateLimiter",
    "RateLimitConfig",
    "ProviderRegistry",
    "MarketDataConfig",
    "ProviderSettings",
    "CacheSettings",
    "MockDataGenerator",
    "create_registry",
    "create_provider",
]
