"""
Base Provider Adapter Interface

Defines the abstract interface that all market data adapters must implement,
the normalized data structures they return, and the provider boundary that
turns upstream failures into soft results.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Any, Generic, TypeVar, Awaitable, Callable
import aiohttp
from loguru import logger

from portfolio_pricing.data_providers.rate_limiter import RateLimiter, RateLimitConfig


T = TypeVar("T")

MOCK_SOURCE = "Mock Data"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert an upstream number or numeric string to Decimal (None stays None)."""
    if value is None or value == "":
        return None
    return Decimal(str(value))


def _float_or_none(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class ProviderKind(str, Enum):
    """Which upstream family a provider belongs to."""
    EQUITIES = "equities"
    CRYPTO = "crypto"


class AssetClass(str, Enum):
    """Asset class tag used in search results."""
    STOCK = "stock"
    CRYPTO = "crypto"
    ETF = "etf"
    MUTUAL_FUND = "mutual_fund"


@dataclass
class ProviderConfig:
    """Runtime configuration (descriptor) for a data provider."""
    name: str
    display_name: str = ""
    api_key: Optional[str] = None
    base_url: str = ""

    # Lower = tried first
    priority: int = 100
    enabled: bool = True
    requires_api_key: bool = False

    # Pacing
    min_call_interval: float = 1.0
    batch_size: int = 1
    batch_delay: float = 1.0

    # Timeouts
    quote_timeout: float = 10.0
    historical_timeout: float = 15.0
    search_timeout: float = 10.0

    max_search_results: int = 10

    def __post_init__(self):
        if not self.display_name:
            self.display_name = self.name


@dataclass
class AssetPrice:
    """Normalized current price."""
    symbol: str
    price: Decimal
    change_24h: Optional[Decimal] = None
    change_percent_24h: Optional[Decimal] = None
    volume: Optional[int] = None
    market_cap: Optional[Decimal] = None
    last_updated: datetime = field(default_factory=_utcnow)
    source: str = ""
    currency: Optional[str] = None

    def __post_init__(self):
        self.symbol = self.symbol.upper()
        if self.price < 0:
            raise ValueError(f"Negative price for {self.symbol}: {self.price}")

    @property
    def is_mock(self) -> bool:
        return self.source == MOCK_SOURCE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        # Field names match the JSON already stored by other cache writers
        return {
            "symbol": self.symbol,
            "price": float(self.price),
            "change24h": _float_or_none(self.change_24h),
            "changePercent24h": _float_or_none(self.change_percent_24h),
            "volume": self.volume,
            "marketCap": _float_or_none(self.market_cap),
            "lastUpdated": self.last_updated.isoformat(),
            "source": self.source,
            "currency": self.currency,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "AssetPrice":
        """Rebuild from a cached JSON payload, re-hydrating the timestamp."""
        last_updated = d.get("lastUpdated")
        if isinstance(last_updated, str):
            last_updated = datetime.fromisoformat(last_updated.replace("Z", "+00:00"))
        elif not isinstance(last_updated, datetime):
            last_updated = _utcnow()

        volume = d.get("volume")
        return cls(
            symbol=d["symbol"],
            price=Decimal(str(d["price"])),
            change_24h=to_decimal(d.get("change24h")),
            change_percent_24h=to_decimal(d.get("changePercent24h")),
            volume=int(volume) if volume is not None else None,
            market_cap=to_decimal(d.get("marketCap")),
            last_updated=last_updated,
            source=d.get("source", ""),
            currency=d.get("currency"),
        )


@dataclass
class HistoricalPricePoint:
    """Normalized daily OHLC record."""
    symbol: str
    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "symbol": self.symbol,
            "date": self.date.isoformat(),
            "open": float(self.open),
            "high": float(self.high),
            "low": float(self.low),
            "close": float(self.close),
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "HistoricalPricePoint":
        volume = d.get("volume")
        return cls(
            symbol=d["symbol"],
            date=date.fromisoformat(d["date"][:10]),
            open=Decimal(str(d["open"])),
            high=Decimal(str(d["high"])),
            low=Decimal(str(d["low"])),
            close=Decimal(str(d["close"])),
            volume=int(volume) if volume is not None else None,
        )


@dataclass
class AssetSearchResult:
    """A single symbol search hit."""
    symbol: str
    name: str
    asset_class: AssetClass = AssetClass.STOCK
    exchange: Optional[str] = None
    currency: Optional[str] = None

    @property
    def identity(self) -> tuple[str, AssetClass]:
        """De-duplication key."""
        return (self.symbol.upper(), self.asset_class)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "type": self.asset_class.value,
            "exchange": self.exchange,
            "currency": self.currency,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "AssetSearchResult":
        return cls(
            symbol=d["symbol"],
            name=d.get("name") or d["symbol"],
            asset_class=AssetClass(d.get("type", AssetClass.STOCK.value)),
            exchange=d.get("exchange"),
            currency=d.get("currency"),
        )


@dataclass
class MarketDataError:
    """A recorded provider failure."""
    provider: str
    symbol: str
    error: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "symbol": self.symbol,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class FetchResult(Generic[T]):
    """
    Outcome of one provider call.

    `value` is None (or empty) when the provider had nothing; `error` is set
    only when the call failed rather than simply finding no data.
    """
    value: Optional[T] = None
    error: Optional[MarketDataError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ProviderError(Exception):
    """Base exception for provider errors."""
    def __init__(self, provider: str, message: str, recoverable: bool = True):
        self.provider = provider
        self.message = message
        self.recoverable = recoverable
        super().__init__(f"[{provider}] {message}")


class RateLimitError(ProviderError):
    """Rate limit exceeded error."""
    def __init__(self, provider: str, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(provider, f"Rate limit exceeded. Retry after: {retry_after}s", recoverable=True)


class AuthenticationError(ProviderError):
    """Authentication failed error."""
    def __init__(self, provider: str, message: str = "Authentication failed"):
        super().__init__(provider, message, recoverable=False)


class DataNotAvailableError(ProviderError):
    """Requested data not available."""
    def __init__(self, provider: str, symbol: str, data_type: str):
        super().__init__(provider, f"Data not available for {symbol} ({data_type})", recoverable=False)


# Failures converted to soft results at the provider boundary
SOFT_FAILURES = (
    ProviderError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    ValueError,
    KeyError,
    TypeError,
    IndexError,
    ArithmeticError,
)


class BaseAdapter(ABC):
    """
    Abstract base class for all market data adapters.

    Each adapter implements the three fetch hooks:
    - _fetch_current_price(): latest price for a symbol
    - _fetch_historical_prices(): daily OHLC series, ascending by date
    - _search(): symbol search

    The public get_current_price/get_historical_prices/search_assets methods
    wrap those hooks with pacing and turn every failure into a FetchResult,
    so nothing raises past this class.
    """

    kind: ProviderKind = ProviderKind.EQUITIES
    # Whether update_api_key() means anything for this provider
    accepts_api_key: bool = False

    def __init__(self, config: ProviderConfig, rate_limiter: Optional[RateLimiter] = None):
        self.config = config
        self.name = config.name
        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limiter = rate_limiter or RateLimiter()
        self._rate_limiter.configure(self.name, RateLimitConfig(min_interval=config.min_call_interval))
        self._success_count = 0
        self._error_count = 0

    # ==================== Descriptor ====================

    @property
    def display_name(self) -> str:
        return self.config.display_name

    @property
    def priority(self) -> int:
        return self.config.priority

    @priority.setter
    def priority(self, value: int) -> None:
        self.config.priority = value

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self.config.enabled = value

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def update_api_key(self, api_key: Optional[str]) -> None:
        """Rotate the credential. Key-gated providers follow it with `enabled`."""
        self.config.api_key = api_key or None
        if self.config.requires_api_key:
            self.config.enabled = bool(api_key)
        logger.info(f"API key updated for {self.name} (enabled={self.config.enabled})")

    def update_pacing(
        self,
        min_call_interval: Optional[float] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ) -> None:
        if min_call_interval is not None:
            self.config.min_call_interval = min_call_interval
            self._rate_limiter.configure(self.name, RateLimitConfig(min_interval=min_call_interval))
        if batch_size is not None:
            self.config.batch_size = batch_size
        if batch_delay is not None:
            self.config.batch_delay = batch_delay

    def describe(self) -> dict[str, Any]:
        """Provider status snapshot."""
        last_call = self._rate_limiter.last_call_at(self.name)
        return {
            "name": self.name,
            "display_name": self.display_name,
            "kind": self.kind.value,
            "enabled": self.enabled,
            "priority": self.priority,
            "requires_api_key": self.config.requires_api_key,
            "has_api_key": bool(self.config.api_key),
            "min_call_interval": self.config.min_call_interval,
            "last_call": last_call.isoformat() if last_call else None,
            "success_count": self._success_count,
            "error_count": self._error_count,
        }

    # ==================== Session lifecycle ====================

    async def initialize(self) -> None:
        """Initialize HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._get_headers())
            logger.info(f"{self.display_name} adapter initialized")

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
            logger.info(f"{self.display_name} adapter closed")

    def _get_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def _get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        timeout: float = 10.0,
    ) -> Any:
        """
        Issue a GET with a bounded timeout and return the decoded JSON body.

        Raises:
            RateLimitError: on HTTP 429
            AuthenticationError: on HTTP 401/403
            ProviderError: on any other non-200 status
        """
        await self.initialize()
        request_timeout = aiohttp.ClientTimeout(total=timeout)

        async with self._session.get(url, params=params, timeout=request_timeout) as response:
            if response.status == 429:
                retry_after = response.headers.get("Retry-After")
                raise RateLimitError(self.name, float(retry_after) if retry_after else None)
            if response.status in (401, 403):
                raise AuthenticationError(self.name, f"HTTP {response.status}")
            if response.status != 200:
                raise ProviderError(self.name, f"API error {response.status}")
            return await response.json(content_type=None)

    # ==================== Public contract ====================

    async def get_current_price(self, symbol: str, currency: str = "USD") -> FetchResult[AssetPrice]:
        """Latest price, or an empty/failed result. Never raises."""
        if not self.enabled:
            return FetchResult()
        return await self._guarded(
            symbol,
            "quote",
            lambda: self._fetch_current_price(symbol.upper(), currency.upper()),
            empty=None,
        )

    async def get_historical_prices(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        currency: str = "USD",
    ) -> FetchResult[list[HistoricalPricePoint]]:
        """Daily OHLC between two dates (inclusive), ascending. Never raises."""
        if not self.enabled:
            return FetchResult(value=[])
        return await self._guarded(
            symbol,
            "historical",
            lambda: self._fetch_historical_prices(symbol.upper(), start_date, end_date, currency.upper()),
            empty=[],
        )

    async def search_assets(self, query: str) -> FetchResult[list[AssetSearchResult]]:
        """Up to max_search_results matches. Never raises."""
        if not self.enabled or not query.strip():
            return FetchResult(value=[])
        result = await self._guarded(query, "search", lambda: self._search(query.strip()), empty=[])
        if result.value:
            result.value = result.value[: self.config.max_search_results]
        return result

    async def health_check(self) -> bool:
        """Check connectivity with a cheap lookup."""
        result = await self.get_current_price(self._health_check_symbol())
        return result.ok and result.value is not None

    def _health_check_symbol(self) -> str:
        return "AAPL"

    async def _guarded(
        self,
        subject: str,
        operation: str,
        call: Callable[[], Awaitable[T]],
        empty: Any,
    ) -> FetchResult[T]:
        try:
            await self._rate_limiter.acquire(self.name)
            value = await call()
        except DataNotAvailableError as e:
            logger.debug(f"{self.display_name}: {e.message}")
            return FetchResult(value=empty)
        except SOFT_FAILURES as e:
            self._error_count += 1
            message = str(e) or e.__class__.__name__
            logger.warning(f"{self.display_name} {operation} failed for {subject}: {message}")
            return FetchResult(
                value=empty,
                error=MarketDataError(provider=self.name, symbol=subject, error=message),
            )

        self._success_count += 1
        return FetchResult(value=value if value is not None else empty)

    # ==================== Fetch hooks ====================

    @abstractmethod
    async def _fetch_current_price(self, symbol: str, currency: str) -> Optional[AssetPrice]:
        """Fetch the latest price; return None when the upstream has no data."""

    @abstractmethod
    async def _fetch_historical_prices(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        currency: str,
    ) -> list[HistoricalPricePoint]:
        """Fetch a daily series sorted ascending by date."""

    @abstractmethod
    async def _search(self, query: str) -> list[AssetSearchResult]:
        """Search symbols by ticker or name."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, priority={self.priority}, enabled={self.enabled})>"
