"""
Two-tier cache: a fast tier in front of a shared tier.
"""
import json
from typing import Optional, Any

from portfolio_pricing.cache.base import CacheBackend


# Remaining TTL of a shared entry is unknown, so back-filled copies live briefly
DEFAULT_BACKFILL_TTL = 60


class CacheUnavailableError(Exception):
    """A tier rejected a write or delete."""


class TieredCache(CacheBackend):
    """
    Reads try the fast tier, then the shared tier (back-filling the fast
    tier on a shared hit). Writes and deletes go to both tiers; the shared
    tier decides success.
    """

    name = "tiered"

    def __init__(self, fast: CacheBackend, shared: CacheBackend, backfill_ttl: int = DEFAULT_BACKFILL_TTL):
        super().__init__()
        self.fast = fast
        self.shared = shared
        self.backfill_ttl = backfill_ttl
        self.supports_enumeration = shared.supports_enumeration

    async def initialize(self) -> None:
        await self.fast.initialize()
        await self.shared.initialize()

    async def close(self) -> None:
        await self.fast.close()
        await self.shared.close()

    async def _read(self, key: str) -> Optional[str]:
        value = await self.fast.get(key)
        if value is None:
            value = await self.shared.get(key)
            if value is None:
                return None
            await self.fast.set(key, value, self.backfill_ttl)
        return json.dumps(value)

    async def _write(self, key: str, data: str, ttl: int) -> None:
        value = json.loads(data)
        await self.fast.set(key, value, ttl)
        if not await self.shared.set(key, value, ttl):
            raise CacheUnavailableError(f"shared tier ({self.shared.name}) write failed")

    async def _remove(self, key: str) -> None:
        await self.fast.delete(key)
        if not await self.shared.delete(key):
            raise CacheUnavailableError(f"shared tier ({self.shared.name}) delete failed")

    async def _clear(self, prefixes: tuple[str, ...]) -> int:
        removed = await self.fast._clear(prefixes)
        if self.shared.supports_enumeration:
            removed += await self.shared._clear(prefixes)
        else:
            await self.shared.clear(prefixes)
        return removed

    async def health_check(self) -> dict[str, Any]:
        result = await super().health_check()
        tiers = {
            "fast": await self.fast.health_check(),
            "shared": await self.shared.health_check(),
        }
        result["tiers"] = tiers
        if any(t["status"] != "healthy" for t in tiers.values()):
            result["status"] = "unhealthy"
        return result

    def get_stats(self) -> dict[str, Any]:
        stats = super().get_stats()
        stats["tiers"] = {"fast": self.fast.get_stats(), "shared": self.shared.get_stats()}
        return stats
