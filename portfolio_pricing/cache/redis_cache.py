"""
Shared Redis cache tier.
"""
from typing import Optional
from loguru import logger

from portfolio_pricing.cache.base import CacheBackend
from portfolio_pricing.db.redis_client import RedisClient, redis_client as default_client


class RedisCache(CacheBackend):
    """
    Redis-backed cache using SETEX/GET/DEL.

    Prefix clearing walks the keyspace with SCAN, never KEYS.
    """

    name = "redis"
    supports_enumeration = True

    def __init__(self, client: Optional[RedisClient] = None, scan_count: int = 500):
        super().__init__()
        self._redis = client or default_client
        self._scan_count = scan_count

    async def initialize(self) -> None:
        if self._redis.is_connected:
            return
        try:
            await self._redis.initialize()
        except Exception as e:
            # Reads degrade to misses until Redis is reachable
            logger.warning(f"Redis cache unavailable, continuing without it: {e}")

    async def close(self) -> None:
        await self._redis.close()

    async def _read(self, key: str) -> Optional[str]:
        return await self._redis.client.get(key)

    async def _write(self, key: str, data: str, ttl: int) -> None:
        await self._redis.client.setex(key, ttl, data)

    async def _remove(self, key: str) -> None:
        await self._redis.client.delete(key)

    async def _clear(self, prefixes: tuple[str, ...]) -> int:
        client = self._redis.client
        removed = 0
        for prefix in prefixes:
            batch = []
            async for key in client.scan_iter(match=f"{prefix}*", count=self._scan_count):
                batch.append(key)
                if len(batch) >= self._scan_count:
                    removed += await client.delete(*batch)
                    batch = []
            if batch:
                removed += await client.delete(*batch)
        return removed
