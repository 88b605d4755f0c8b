"""
Recipes API - Listing Cache Store
===================================

What:  Key → value store used to cache recipe listing pages.
How:   CacheStore is the abstract contract (get / set / delete); two
       implementations exist:
         - InMemoryCacheStore: per-process dict with optional TTL (default)
         - RedisCacheStore:    shared across workers via redis.asyncio
       build_cache_store() picks one from settings (REDIS_URL empty → memory).
Who:   RecipeService (listing reads, write invalidation); health route.

Values are JSON-compatible payloads. Both stores serialize to JSON text, so
a value read back is always a fresh copy and never aliases the caller's dict.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as aioredis

from recipes_api.config import Settings

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """
    Abstract cache contract.

    Contract:
        - get() returns None on a miss (expired entries count as misses)
        - set() overwrites any existing value under the key
        - delete() of a missing key is a no-op
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def health_check(self) -> bool:
        """True when the store can serve requests."""
        return True

    async def close(self) -> None:
        """Release connections held by the store (called on shutdown)."""
        return None


class InMemoryCacheStore(CacheStore):
    """
    Process-local cache with a fixed time-to-live.

    Args:
        ttl: Seconds an entry lives. None or 0 keeps entries until deleted.

    Each uvicorn worker holds its own copy; use RedisCacheStore when the API
    runs with several workers.
    """

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = ttl or None
        # key → (expires_at monotonic seconds or None, JSON text)
        self._entries: Dict[str, Tuple[Optional[float], str]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        expires_at = time.monotonic() + self.ttl if self.ttl else None
        self._entries[key] = (expires_at, json.dumps(value))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class RedisCacheStore(CacheStore):
    """
    Redis-backed cache shared by every worker and instance.

    Entries are stored as JSON strings with SET ... EX <ttl> when a TTL is
    configured.
    """

    def __init__(self, client: aioredis.Redis, ttl: Optional[int] = None):
        self.client = client
        self.ttl = ttl or None

    @classmethod
    def from_url(cls, url: str, ttl: Optional[int] = None) -> "RedisCacheStore":
        return cls(aioredis.from_url(url, decode_responses=True), ttl=ttl)

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self.client.set(key, json.dumps(value), ex=self.ttl)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except aioredis.RedisError as e:
            logger.warning("Redis health check failed: %s", str(e))
            return False

    async def close(self) -> None:
        await self.client.aclose()


def build_cache_store(config: Settings) -> CacheStore:
    """Create the cache store selected by configuration."""
    if config.redis_url:
        logger.info("Listing cache: redis (ttl=%ss)", config.cache_ttl or "none")
        return RedisCacheStore.from_url(config.redis_url, ttl=config.cache_ttl)
    logger.info("Listing cache: in-memory (ttl=%ss)", config.cache_ttl or "none")
    return InMemoryCacheStore(ttl=config.cache_ttl)
