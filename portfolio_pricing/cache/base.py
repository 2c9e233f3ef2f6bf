"""
Cache Backend Interface

One async contract shared by every cache tier. Values are JSON payloads;
callers re-hydrate typed fields (timestamps, decimals) themselves.

Backends never raise on I/O failure: a failed read is a miss and a failed
write/delete returns False.
"""
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Any, Iterable
from loguru import logger

from portfolio_pricing.cache.keys import CACHE_PREFIXES


HEALTH_CHECK_TTL = 60


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total * 100, 2) if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
        }


class CacheBackend(ABC):
    """
    Base class for cache tiers.

    Subclasses implement the raw string operations; this class handles
    JSON encoding, statistics and failure containment.
    """

    name: str = "base"
    # Whether clear() can actually find and delete keys
    supports_enumeration: bool = True

    def __init__(self):
        self._stats = CacheStats()

    async def initialize(self) -> None:
        """Open connections, if any."""

    async def close(self) -> None:
        """Release connections, if any."""

    # ==================== Raw operations ====================

    @abstractmethod
    async def _read(self, key: str) -> Optional[str]:
        """Return the stored string, or None when missing/expired."""

    @abstractmethod
    async def _write(self, key: str, data: str, ttl: int) -> None:
        """Store a string with a TTL in seconds."""

    @abstractmethod
    async def _remove(self, key: str) -> None:
        """Delete a key (missing keys are fine)."""

    @abstractmethod
    async def _clear(self, prefixes: tuple[str, ...]) -> int:
        """Delete every key under the prefixes, returning how many went."""

    # ==================== Public contract ====================

    async def get(self, key: str) -> Optional[Any]:
        """Decoded value, or None on miss or failure."""
        try:
            data = await self._read(key)
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"{self.name} cache get error for {key}: {e}")
            return None

        if data is None:
            self._stats.misses += 1
            logger.debug(f"Cache miss: {key}")
            return None

        try:
            value = json.loads(data)
        except ValueError:
            self._stats.errors += 1
            logger.warning(f"Corrupt cache entry dropped: {key}")
            return None

        self._stats.hits += 1
        logger.debug(f"Cache hit: {key}")
        return value

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            await self._write(key, json.dumps(value), ttl)
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"{self.name} cache set error for {key}: {e}")
            return False

        self._stats.sets += 1
        return True

    async def delete(self, key: str) -> bool:
        try:
            await self._remove(key)
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"{self.name} cache delete error for {key}: {e}")
            return False

        self._stats.deletes += 1
        return True

    async def clear(self, prefixes: Iterable[str] = CACHE_PREFIXES) -> bool:
        """Delete all price/historical/search entries."""
        try:
            removed = await self._clear(tuple(prefixes))
        except Exception as e:
            self._stats.errors += 1
            logger.error(f"{self.name} cache clear error: {e}")
            return False

        logger.info(f"{self.name} cache cleared ({removed} keys)")
        return True

    async def health_check(self) -> dict[str, Any]:
        """
        Write, read and delete a throwaway key.

        Production keys are never touched; the probe key expires on its
        own even if the delete fails.
        """
        now = datetime.now(timezone.utc)
        key = f"health_check_{int(time.time() * 1000)}"
        probe = {"timestamp": now.isoformat()}

        try:
            write_ok = await self.set(key, probe, HEALTH_CHECK_TTL)
            read_ok = write_ok and (await self.get(key)) == probe
            delete_ok = await self.delete(key)
        except Exception as e:
            logger.error(f"{self.name} cache health check failed: {e}")
            return {
                "status": "unhealthy",
                "backend": self.name,
                "error": str(e),
                "timestamp": now.isoformat(),
            }

        return {
            "status": "healthy" if write_ok and read_ok and delete_ok else "unhealthy",
            "backend": self.name,
            "write_test": write_ok,
            "read_test": read_ok,
            "delete_test": delete_ok,
            "timestamp": now.isoformat(),
        }

    def get_stats(self) -> dict[str, Any]:
        return {"backend": self.name, **self._stats.to_dict()}

    def reset_stats(self) -> None:
        self._stats = CacheStats()
