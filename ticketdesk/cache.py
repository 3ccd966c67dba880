"""
Redis caching layer for read-heavy listings.

The cache is best effort: when Redis is disabled or unreachable every
read is a miss and every write is dropped.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import get_settings

logger = logging.getLogger(__name__)


class CacheKeyBuilder:
    """Helper class for building consistent cache keys."""

    @staticmethod
    def upcoming_events(limit: int) -> str:
        """Build cache key for the upcoming events listing."""
        return f"events:upcoming:{limit}"

    @staticmethod
    def event_reviews(event_id: str, page: int, limit: int) -> str:
        """Build cache key for one page of an event's reviews."""
        return f"reviews:event:{event_id}:{page}:{limit}"

    @staticmethod
    def event_reviews_pattern(event_id: str) -> str:
        return f"reviews:event:{event_id}:*"


class CacheTTL:
    """Cache TTL constants (in seconds)."""

    UPCOMING_EVENTS = 60
    EVENT_REVIEWS = 300


class RedisCache:
    """Redis cache manager with connection handling and operations."""

    def __init__(self):
        self.client: Optional[Redis] = None
        self.pool: Optional[redis.ConnectionPool] = None

    async def initialize(self) -> None:
        """Initialize Redis connection pool and client."""
        settings = get_settings()
        if not settings.enable_cache:
            logger.info("Redis cache disabled by configuration")
            return

        try:
            self.pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client = Redis(connection_pool=self.pool)

            # Test connection
            await self.client.ping()
            logger.info("Redis cache initialized successfully")

        except RedisError as e:
            logger.warning("Redis unavailable, continuing without cache: %s", e)
            await self.close()

    async def close(self) -> None:
        """Close Redis connections."""
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.disconnect()
        self.client = None
        self.pool = None

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        if not self.client:
            return None

        try:
            value = await self.client.get(key)
            if value:
                return json.loads(value)
            return None
        except (RedisError, ValueError) as e:
            logger.warning("Failed to get cache key %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.client:
            return False

        try:
            serialized_value = json.dumps(value, default=str)
            if ttl:
                await self.client.setex(key, ttl, serialized_value)
            else:
                await self.client.set(key, serialized_value)
            return True
        except (RedisError, TypeError) as e:
            logger.warning("Failed to set cache key %s: %s", key, e)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Returns:
            Number of keys deleted
        """
        if not self.client:
            return 0

        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if keys:
                await self.client.delete(*keys)
            return len(keys)
        except RedisError as e:
            logger.warning("Failed to delete keys with pattern %s: %s", pattern, e)
            return 0


# Global cache instance
cache = RedisCache()


async def init_cache() -> None:
    """Initialize the global cache instance."""
    await cache.initialize()


async def close_cache() -> None:
    """Close the global cache instance."""
    await cache.close()


def get_cache() -> RedisCache:
    """Get the global cache instance."""
    return cache
