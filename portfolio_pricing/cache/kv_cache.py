"""
Edge KV cache tier.

Talks to a Cloudflare Workers KV namespace over the REST API. KV cannot
list keys cheaply, so clear() is a logged no-op and entries only go away
when their TTL runs out.
"""
from typing import Optional, Any
from urllib.parse import quote
import aiohttp
from loguru import logger

from portfolio_pricing.cache.base import CacheBackend
from portfolio_pricing.cache.keys import CACHE_PREFIXES


KV_API_BASE_URL = "https://api.cloudflare.com/client/v4"
# KV rejects shorter expirations
MIN_KV_TTL = 60


class KVRequestError(Exception):
    """Unexpected status from the KV API."""
    def __init__(self, method: str, status: int, body: str = ""):
        self.status = status
        super().__init__(f"KV {method} failed with HTTP {status}: {body[:200]}")


class KVNamespaceCache(CacheBackend):
    """Cloudflare KV namespace cache (not enumerable)."""

    name = "kv"
    supports_enumeration = False

    def __init__(
        self,
        account_id: str,
        namespace_id: str,
        api_token: str,
        timeout: float = 10.0,
        base_url: str = KV_API_BASE_URL,
    ):
        super().__init__()
        self._account_id = account_id
        self._namespace_id = namespace_id
        self._api_token = api_token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._base_url = base_url
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._account_id and self._namespace_id and self._api_token)

    async def initialize(self) -> None:
        if not self.is_configured:
            logger.warning("KV cache credentials missing, every lookup will miss")
            return
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self._api_token}"},
                timeout=self._timeout,
            )
            logger.info("KV cache session opened")

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
            logger.info("KV cache session closed")

    def _url(self, key: str) -> str:
        return (
            f"{self._base_url}/accounts/{self._account_id}/storage/kv/namespaces/"
            f"{self._namespace_id}/values/{quote(key, safe='')}"
        )

    async def _request(self, method: str, key: str, **kwargs: Any) -> tuple[int, str]:
        """Issue one KV API call and return (status, body text)."""
        if not self.is_configured:
            raise KVRequestError(method, 0, "credentials missing")
        await self.initialize()
        async with self._session.request(method, self._url(key), **kwargs) as response:
            return response.status, await response.text()

    async def _read(self, key: str) -> Optional[str]:
        status, body = await self._request("GET", key)
        if status == 404:
            return None
        if status != 200:
            raise KVRequestError("GET", status, body)
        return body

    async def _write(self, key: str, data: str, ttl: int) -> None:
        status, body = await self._request(
            "PUT",
            key,
            params={"expiration_ttl": max(int(ttl), MIN_KV_TTL)},
            data=data.encode("utf-8"),
            headers={"Content-Type": "text/plain"},
        )
        if status != 200:
            raise KVRequestError("PUT", status, body)

    async def _remove(self, key: str) -> None:
        status, body = await self._request("DELETE", key)
        if status not in (200, 404):
            raise KVRequestError("DELETE", status, body)

    async def _clear(self, prefixes: tuple[str, ...]) -> int:
        return 0

    async def clear(self, prefixes=CACHE_PREFIXES) -> bool:
        """Report success without removing anything; entries expire by TTL."""
        logger.warning(
            "KV cache does not support key enumeration; "
            f"entries under {', '.join(prefixes)} will expire by TTL"
        )
        return True
