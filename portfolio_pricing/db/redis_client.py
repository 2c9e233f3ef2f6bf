"""
Portfolio Pricing - Redis Client
"""
from typing import Optional
import redis.asyncio as redis
from loguru import logger

from portfolio_pricing.config import settings


class RedisClient:
    """Async Redis client wrapper."""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._client: redis.Redis | None = None

    @property
    def url(self) -> str:
        return self._url or settings.redis_url

    async def initialize(self):
        """Initialize Redis connection."""
        try:
            self._client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
            )
            # Test connection
            await self._client.ping()
            logger.info(f"Redis connected: {self.url.split('@')[-1]}")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            raise

    async def close(self):
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self._client:
            raise RuntimeError("Redis client not initialized. Call initialize() first.")
        return self._client


# Global Redis client instance
redis_client = RedisClient()
