"""
Cache backend selection from settings.
"""
from typing import Optional
from loguru import logger

from portfolio_pricing.config import Settings, settings as default_settings
from portfolio_pricing.cache.base import CacheBackend
from portfolio_pricing.cache.memory import MemoryCache
from portfolio_pricing.cache.redis_cache import RedisCache
from portfolio_pricing.cache.kv_cache import KVNamespaceCache
from portfolio_pricing.cache.tiered import TieredCache
from portfolio_pricing.db.redis_client import RedisClient
from portfolio_pricing.utils.exceptions import ConfigurationError


CACHE_BACKENDS = ("memory", "redis", "kv", "tiered")


def _redis_cache(config: Settings) -> RedisCache:
    return RedisCache(RedisClient(config.redis_url))


def _kv_cache(config: Settings) -> KVNamespaceCache:
    return KVNamespaceCache(
        account_id=config.CLOUDFLARE_ACCOUNT_ID,
        namespace_id=config.CLOUDFLARE_KV_NAMESPACE_ID,
        api_token=config.CLOUDFLARE_API_TOKEN,
    )


def create_cache(config: Optional[Settings] = None) -> CacheBackend:
    """
    Build the cache configured by CACHE_BACKEND.

    memory  - process-local only
    redis   - shared Redis
    kv      - Cloudflare KV namespace
    tiered  - memory in front of Redis

    Raises:
        ConfigurationError: unknown backend name
    """
    config = config or default_settings
    backend = config.CACHE_BACKEND.strip().lower()

    if backend == "memory":
        cache = MemoryCache()
    elif backend == "redis":
        cache = _redis_cache(config)
    elif backend == "kv":
        cache = _kv_cache(config)
    elif backend == "tiered":
        cache = TieredCache(fast=MemoryCache(), shared=_redis_cache(config))
    else:
        raise ConfigurationError(
            f"Unknown cache backend '{config.CACHE_BACKEND}'",
            details={"allowed": list(CACHE_BACKENDS)},
        )

    logger.info(f"Cache backend: {cache.name}")
    return cache
