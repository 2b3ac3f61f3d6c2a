"""Redis caching layer for external API lookups.

Caching is optional: with no REDIS_URL configured every call is a miss and
every write is dropped. Redis errors are logged and treated the same way, so
the cache can never fail a request.
"""

import hashlib
import json
import logging
from typing import Any

import redis.asyncio as redis

from gameshelf.config import get_settings

logger = logging.getLogger(__name__)


class CacheService:
    """Async Redis cache service."""

    def __init__(self, redis_url: str | None = None):
        self.redis_url = redis_url
        self._redis: redis.Redis | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.redis_url)

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()

    async def get(self, key: str) -> Any | None:
        """Get value from cache."""
        if not self.enabled:
            return None
        try:
            client = await self._get_redis()
            value = await client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Set value in cache with optional TTL."""
        if not self.enabled:
            return False
        try:
            client = await self._get_redis()
            serialized = json.dumps(value)
            if ttl:
                await client.setex(key, ttl, serialized)
            else:
                await client.set(key, serialized)
            return True
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    # Key patterns for different data types
    @staticmethod
    def rawg_search_key(query: str, page_size: int) -> str:
        digest = hashlib.sha1(query.strip().casefold().encode("utf-8")).hexdigest()
        return f"rawg:search:{page_size}:{digest}"


# Singleton cache instance
_cache: CacheService | None = None


def get_cache() -> CacheService:
    """Get the singleton cache service."""
    global _cache
    if _cache is None:
        _cache = CacheService(get_settings().redis_url)
    return _cache
