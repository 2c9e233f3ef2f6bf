"""
Market Data Configuration

Runtime configuration for providers, cache TTLs and demo mode, plus the
partial-update merge used by PriceResolutionService.update_config().

Partial updates may be nested:
    {"providers": {"alpha_vantage": {"api_key": "..."}}, "cache": {"ttl": 600}}
or flat:
    {"alpha_vantage_api_key": "...", "cache_ttl_seconds": 600}
    {"alphaVantageApiKey": "...", "coinGeckoEnabled": False}
"""
import re
from typing import Optional, Any, Mapping
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from portfolio_pricing.config import Settings, settings as default_settings
from portfolio_pricing.utils.exceptions import ConfigurationError


PROVIDER_FIELDS = (
    "enabled",
    "api_key",
    "priority",
    "min_call_interval",
    "batch_size",
    "batch_delay",
)

# Flat top-level spellings, after snake-casing
FLAT_CACHE_KEYS = {
    "cache_ttl_seconds": "ttl",
    "cache_ttl": "ttl",
    "historical_cache_ttl_seconds": "historical_ttl",
    "search_cache_ttl_seconds": "search_ttl",
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _compact(name: str) -> str:
    return name.replace("_", "").lower()


class ProviderSettings(BaseModel):
    """Per-provider overrides. Unset fields keep the adapter default."""
    model_config = ConfigDict(extra="forbid")

    enabled: Optional[bool] = None
    priority: Optional[int] = None
    api_key: Optional[str] = None
    min_call_interval: Optional[float] = Field(default=None, ge=0)
    batch_size: Optional[int] = Field(default=None, ge=1)
    batch_delay: Optional[float] = Field(default=None, ge=0)


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ttl: int = Field(default=300, gt=0)
    historical_ttl: int = Field(default=3600, gt=0)
    search_ttl: int = Field(default=1800, gt=0)


class MarketDataConfig(BaseModel):
    """Active market data configuration."""
    model_config = ConfigDict(extra="forbid")

    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    demo_mode: bool = False

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "MarketDataConfig":
        """Build the startup configuration from environment settings."""
        config = config or default_settings

        alpha_vantage_enabled = config.ALPHA_VANTAGE_ENABLED
        if alpha_vantage_enabled is None:
            alpha_vantage_enabled = bool(config.ALPHA_VANTAGE_API_KEY)

        return cls(
            providers={
                "yahoo_finance": ProviderSettings(
                    enabled=config.YAHOO_FINANCE_ENABLED,
                    priority=config.YAHOO_FINANCE_PRIORITY,
                ),
                "alpha_vantage": ProviderSettings(
                    enabled=alpha_vantage_enabled,
                    priority=config.ALPHA_VANTAGE_PRIORITY,
                    api_key=config.ALPHA_VANTAGE_API_KEY or None,
                ),
                "coingecko": ProviderSettings(
                    enabled=config.COINGECKO_ENABLED,
                    priority=config.COINGECKO_PRIORITY,
                    api_key=config.COINGECKO_API_KEY or None,
                ),
            },
            cache=CacheSettings(
                ttl=config.CACHE_TTL_SECONDS,
                historical_ttl=config.HISTORICAL_CACHE_TTL_SECONDS,
                search_ttl=config.SEARCH_CACHE_TTL_SECONDS,
            ),
            demo_mode=config.DEMO_MODE,
        )

    def merge(self, partial: Mapping[str, Any]) -> tuple["MarketDataConfig", dict[str, Any]]:
        """
        Deep-merge a partial update into a new config.

        Returns:
            (new config, normalized nested update)

        Raises:
            ConfigurationError: unknown keys or invalid values; self is untouched
        """
        update = normalize_update(partial, self.providers.keys())

        merged = self.model_dump()
        for name, fields in update.get("providers", {}).items():
            merged["providers"].setdefault(name, {}).update(fields)
        merged["cache"].update(update.get("cache", {}))
        if "demo_mode" in update:
            merged["demo_mode"] = update["demo_mode"]

        try:
            return MarketDataConfig.model_validate(merged), update
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid market data configuration",
                details={"errors": [
                    {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                    for err in e.errors()
                ]},
            ) from e

    def redacted(self) -> dict[str, Any]:
        """Serializable view with API keys masked."""
        data = self.model_dump()
        for fields in data["providers"].values():
            fields["has_api_key"] = bool(fields.pop("api_key", None))
        return data


def _match_provider(key: str, provider_names: list[str]) -> Optional[tuple[str, str]]:
    """Split a flat key like 'alpha_vantage_api_key' into (provider, field)."""
    for field in sorted(PROVIDER_FIELDS, key=len, reverse=True):
        suffix = f"_{field}"
        if not key.endswith(suffix):
            continue
        prefix = _compact(key[: -len(suffix)])
        for name in provider_names:
            if _compact(name) == prefix:
                return name, field
    return None


def normalize_update(partial: Mapping[str, Any], provider_names) -> dict[str, Any]:
    """
    Convert a nested or flat/camelCase partial update to the nested form.

    Raises:
        ConfigurationError: when the update is not a mapping or has unknown keys
    """
    if not isinstance(partial, Mapping):
        raise ConfigurationError("Configuration update must be a mapping")

    names = list(provider_names)
    providers: dict[str, dict[str, Any]] = {}
    cache: dict[str, Any] = {}
    update: dict[str, Any] = {}
    unknown: list[str] = []

    for raw_key, value in partial.items():
        key = to_snake(str(raw_key))

        if key == "providers":
            if not isinstance(value, Mapping):
                raise ConfigurationError("'providers' must be a mapping")
            for name, fields in value.items():
                name = to_snake(str(name))
                match = next((n for n in names if _compact(n) == _compact(name)), None)
                if match is None:
                    unknown.append(f"providers.{name}")
                    continue
                if not isinstance(fields, Mapping):
                    raise ConfigurationError(f"Settings for provider '{match}' must be a mapping")
                providers.setdefault(match, {}).update({to_snake(str(k)): v for k, v in fields.items()})
        elif key == "cache":
            if not isinstance(value, Mapping):
                raise ConfigurationError("'cache' must be a mapping")
            cache.update({to_snake(str(k)): v for k, v in value.items()})
        elif key in FLAT_CACHE_KEYS:
            cache[FLAT_CACHE_KEYS[key]] = value
        elif key == "demo_mode":
            update["demo_mode"] = value
        else:
            match = _match_provider(key, names)
            if match is None:
                unknown.append(str(raw_key))
                continue
            name, field = match
            providers.setdefault(name, {})[field] = value

    if unknown:
        raise ConfigurationError(
            "Unknown configuration keys",
            details={"unknown_keys": unknown},
        )

    if providers:
        update["providers"] = providers
    if cache:
        update["cache"] = cache
    return update
