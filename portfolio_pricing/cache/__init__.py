"""
Cache Package

One async cache contract with memory, Redis, edge KV and tiered backends.
"""
from portfolio_pricing.cache.base import CacheBackend, CacheStats
from portfolio_pricing.cache.memory import MemoryCache
from portfolio_pricing.cache.redis_cache import RedisCache
from portfolio_pricing.cache.kv_cache import KVNamespaceCache
from portfolio_pricing.cache.tiered import TieredCache
from portfolio_pricing.cache.factory import create_cache

__all__ = [
    "CacheBackend",
    "CacheStats",
    "MemoryCache",
    "RedisCache",
    "KVNamespaceCache",
    "TieredCache",
    "create_cache",
]
