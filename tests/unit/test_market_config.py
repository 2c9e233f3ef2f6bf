"""
Unit Tests - Market Data Configuration
Settings loading and partial-update merging.
"""
import pytest

from portfolio_pricing.config import Settings
from portfolio_pricing.data_providers.market_config import MarketDataConfig, normalize_update, to_snake
from portfolio_pricing.utils.exceptions import ConfigurationError


PROVIDERS = ["yahoo_finance", "alpha_vantage", "coingecko"]


class TestSettings:
    """Tests for environment settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.CACHE_TTL_SECONDS == 300
        assert settings.HISTORICAL_CACHE_TTL_SECONDS == 3600
        assert settings.SEARCH_CACHE_TTL_SECONDS == 1800
        assert settings.YAHOO_FINANCE_PRIORITY == 1
        assert settings.ALPHA_VANTAGE_PRIORITY == 2
        assert settings.COINGECKO_PRIORITY == 3

    def test_redis_url_with_password(self):
        settings = Settings(REDIS_PASSWORD="secret", REDIS_HOST="cache", REDIS_URL="")
        assert settings.redis_url == "redis://:secret@cache:6379/0"

    def test_redis_url_override(self):
        settings = Settings(REDIS_URL="redis://elsewhere:6380/2")
        assert settings.redis_url == "redis://elsewhere:6380/2"


class TestFromSettings:
    """Tests for MarketDataConfig.from_settings."""

    def test_alpha_vantage_follows_key_when_unset(self):
        without_key = MarketDataConfig.from_settings(Settings(ALPHA_VANTAGE_API_KEY=""))
        with_key = MarketDataConfig.from_settings(Settings(ALPHA_VANTAGE_API_KEY="k"))

        assert without_key.providers["alpha_vantage"].enabled is False
        assert with_key.providers["alpha_vantage"].enabled is True
        assert with_key.providers["alpha_vantage"].api_key == "k"

    def test_explicit_disable_wins(self):
        config = MarketDataConfig.from_settings(Settings(ALPHA_VANTAGE_API_KEY="k", ALPHA_VANTAGE_ENABLED=False))
        assert config.providers["alpha_vantage"].enabled is False

    def test_cache_and_demo_mode(self):
        config = MarketDataConfig.from_settings(Settings(CACHE_TTL_SECONDS=120, DEMO_MODE=True))
        assert config.cache.ttl == 120
        assert config.demo_mode is True


class TestNormalizeUpdate:
    """Flat, camelCase and nested update forms."""

    def test_to_snake(self):
        assert to_snake("alphaVantageApiKey") == "alpha_vantage_api_key"
        assert to_snake("cacheTtlSeconds") == "cache_ttl_seconds"
        assert to_snake("already_snake") == "already_snake"

    def test_flat_snake_keys(self):
        update = normalize_update(
            {"alpha_vantage_api_key": "k", "coingecko_enabled": False, "cache_ttl_seconds": 60},
            PROVIDERS,
        )
        assert update == {
            "providers": {"alpha_vantage": {"api_key": "k"}, "coingecko": {"enabled": False}},
            "cache": {"ttl": 60},
        }

    def test_camel_case_keys(self):
        update = normalize_update(
            {"alphaVantageApiKey": "k", "coinGeckoPriority": 1, "yahooFinanceEnabled": False, "demoMode": True},
            PROVIDERS,
        )
        assert update["providers"] == {
            "alpha_vantage": {"api_key": "k"},
            "coingecko": {"priority": 1},
            "yahoo_finance": {"enabled": False},
        }
        assert update["demo_mode"] is True

    def test_nested_form(self):
        update = normalize_update(
            {"providers": {"alphaVantage": {"apiKey": "k", "batchSize": 3}}, "cache": {"search_ttl": 900}},
            PROVIDERS,
        )
        assert update == {
            "providers": {"alpha_vantage": {"api_key": "k", "batch_size": 3}},
            "cache": {"search_ttl": 900},
        }

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_update({"polygonApiKey": "k"}, PROVIDERS)
        assert exc_info.value.details["unknown_keys"] == ["polygonApiKey"]

    def test_non_mapping_rejected(self):
        with pytest.raises(ConfigurationError):
            normalize_update(["alpha_vantage_api_key"], PROVIDERS)


class TestMerge:
    """Tests for MarketDataConfig.merge."""

    @pytest.fixture
    def config(self):
        return MarketDataConfig.from_settings(Settings(ALPHA_VANTAGE_API_KEY=""))

    def test_merge_is_deep_and_non_destructive(self, config):
        merged, _ = config.merge({"alpha_vantage_api_key": "k"})

        assert merged.providers["alpha_vantage"].api_key == "k"
        assert merged.providers["alpha_vantage"].priority == 2
        assert merged.providers["yahoo_finance"].enabled is True
        # Original untouched
        assert config.providers["alpha_vantage"].api_key is None

    @pytest.mark.parametrize("partial", [
        {"cache_ttl_seconds": -5},
        {"cache_ttl_seconds": "soon"},
        {"coingecko_priority": "high"},
        {"providers": {"coingecko": {"batch_size": 0}}},
        {"providers": {"coingecko": {"colour": "blue"}}},
        {"providers": "coingecko"},
    ])
    def test_invalid_values_raise(self, config, partial):
        before = config.model_dump()
        with pytest.raises(ConfigurationError):
            config.merge(partial)
        assert config.model_dump() == before

    def test_redacted_hides_keys(self, config):
        merged, _ = config.merge({"alpha_vantage_api_key": "super-secret"})
        view = merged.redacted()

        assert view["providers"]["alpha_vantage"]["has_api_key"] is True
        assert "super-secret" not in str(view)
