"""
Portfolio Pricing - Configuration Settings
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "Portfolio Pricing"
    APP_ENV: str = "development"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"

    # =========================
    # Redis
    # =========================
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0
    # Direct REDIS_URL from environment (for Docker - overrides individual settings)
    REDIS_URL: str = ""

    @property
    def redis_url(self) -> str:
        """Get the Redis URL."""
        if self.REDIS_URL:
            return self.REDIS_URL
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # =========================
    # Cache
    # =========================
    # memory | redis | kv | tiered (memory in front of redis)
    CACHE_BACKEND: str = "memory"
    CACHE_TTL_SECONDS: int = 300
    HISTORICAL_CACHE_TTL_SECONDS: int = 3600
    SEARCH_CACHE_TTL_SECONDS: int = 1800

    # Cloudflare KV namespace (edge cache tier)
    CLOUDFLARE_ACCOUNT_ID: str = ""
    CLOUDFLARE_KV_NAMESPACE_ID: str = ""
    CLOUDFLARE_API_TOKEN: str = ""

    # =========================
    # Data Providers
    # =========================
    YAHOO_FINANCE_ENABLED: bool = True
    YAHOO_FINANCE_PRIORITY: int = 1

    ALPHA_VANTAGE_API_KEY: str = ""
    # Unset means "enabled when a key is present"
    ALPHA_VANTAGE_ENABLED: Optional[bool] = None
    ALPHA_VANTAGE_PRIORITY: int = 2

    COINGECKO_API_KEY: str = ""
    COINGECKO_ENABLED: bool = True
    COINGECKO_PRIORITY: int = 3

    # Synthesize labelled mock prices when every provider fails
    DEMO_MODE: bool = False

    # =========================
    # Scheduler Settings
    # =========================
    PRICE_REFRESH_ENABLED: bool = True
    PRICE_REFRESH_MINUTE: int = 0  # minute past every hour
    PRICE_REFRESH_CURRENCY: str = "USD"
    TIMEZONE: str = "UTC"

    # =========================
    # Logging
    # =========================
    LOG_LEVEL: str = "INFO"
    # File sinks are only added when a directory is configured
    LOG_DIR: str = ""


# Create global settings instance
settings = Settings()
