"""
Provider Adapters Package

Each adapter implements the BaseAdapter interface for consistent data access.
"""
from portfolio_pricing.data_providers.adapters.base import (
    BaseAdapter,
    ProviderConfig,
    ProviderKind,
    AssetClass,
    AssetPrice,
    HistoricalPricePoint,
    AssetSearchResult,
    MarketDataError,
    FetchResult,
    ProviderError,
    RateLimitError,
    AuthenticationError,
    DataNotAvailableError,
)
from portfolio_pricing.data_providers.adapters.yahoo_finance import (
    YahooFinanceAdapter,
    create_yahoo_finance_config,
)
from portfolio_pricing.data_providers.adapters.alpha_vantage import (
    AlphaVantageAdapter,
    create_alpha_vantage_config,
)
from portfolio_pricing.data_providers.adapters.coingecko import (
    CoinGeckoAdapter,
    create_coingecko_config,
)
