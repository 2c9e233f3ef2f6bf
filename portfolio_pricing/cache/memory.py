"""
In-process cache tier with per-key TTL.
"""
import time
from typing import Optional, Callable

from portfolio_pricing.cache.base import CacheBackend


class MemoryCache(CacheBackend):
    """
    Dict-backed cache. Expired entries are dropped lazily on read and
    swept when the store grows past max_entries.
    """

    name = "memory"
    supports_enumeration = True

    def __init__(self, max_entries: int = 10_000, clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self._store: dict[str, tuple[str, float]] = {}
        self._max_entries = max_entries
        self._clock = clock

    def __len__(self) -> int:
        return len(self._store)

    async def _read(self, key: str) -> Optional[str]:
        entry = self._store.get(key)
        if entry is None:
            return None
        data, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return data

    async def _write(self, key: str, data: str, ttl: int) -> None:
        if len(self._store) >= self._max_entries and key not in self._store:
            self._evict()
        self._store[key] = (data, self._clock() + ttl)

    async def _remove(self, key: str) -> None:
        self._store.pop(key, None)

    async def _clear(self, prefixes: tuple[str, ...]) -> int:
        doomed = [k for k in self._store if k.startswith(prefixes)]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._store.items() if expires_at <= now]
        for key in expired:
            del self._store[key]
        # Still full: drop the entry closest to expiry
        if len(self._store) >= self._max_entries:
            oldest = min(self._store, key=lambda k: self._store[k][1])
            del self._store[oldest]
