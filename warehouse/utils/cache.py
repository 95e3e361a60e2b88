import json
import logging
from functools import lru_cache
from typing import Optional, Any

import redis

from warehouse.config import get_settings

logger = logging.getLogger(__name__)

REPORT_CACHE_PREFIX = "report"


class CacheService:
    """
    Redis cache service for report aggregates.

    This service provides methods for:
    - Setting cache with TTL
    - Getting cached values
    - Invalidating single keys or whole prefixes

    Redis failures are logged and treated as cache misses; the cache never
    fails a request.
    """

    def __init__(self, client: redis.Redis, ttl: int = 300):
        self.client = client
        self.ttl = ttl

    def _make_key(self, prefix: str, key: str) -> str:
        """Create a namespaced cache key."""
        return f"{prefix}:{key}"

    def get(self, prefix: str, key: str) -> Optional[Any]:
        """
        Get a value from cache.

        Args:
            prefix: Cache key prefix (e.g., 'report')
            key: Unique identifier

        Returns:
            Cached value or None if not found
        """
        cache_key = self._make_key(prefix, key)
        try:
            value = self.client.get(cache_key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.warning(f"Cache read failed for {cache_key}: {e}")
            return None

    def set(self, prefix: str, key: str, value: Any, ttl: int = None) -> bool:
        """
        Set a value in cache with TTL.

        Args:
            prefix: Cache key prefix
            key: Unique identifier
            value: Value to cache (will be JSON serialized)
            ttl: Time to live in seconds (optional, uses default if not provided)

        Returns:
            True if successful, False otherwise
        """
        cache_key = self._make_key(prefix, key)
        ttl = ttl or self.ttl
        try:
            serialized = json.dumps(value, default=str)
            self.client.setex(cache_key, ttl, serialized)
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Cache write failed for {cache_key}: {e}")
            return False

    def delete(self, prefix: str, key: str) -> bool:
        """Delete a single value from cache."""
        cache_key = self._make_key(prefix, key)
        try:
            self.client.delete(cache_key)
            return True
        except redis.RedisError:
            return False

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Redis key pattern (e.g., 'report:*')

        Returns:
            Number of keys deleted
        """
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                return self.client.delete(*keys)
            return 0
        except redis.RedisError as e:
            logger.warning(f"Cache invalidation failed for {pattern}: {e}")
            return 0

    def invalidate_reports(self) -> int:
        """Drop every cached report aggregate."""
        return self.delete_pattern(f"{REPORT_CACHE_PREFIX}:*")


@lru_cache
def get_cache_service() -> CacheService:
    """
    Process-scoped cache service, used as a FastAPI dependency.

    The Redis client connects lazily, so building it never blocks start-up.
    """
    settings = get_settings()
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return CacheService(client, ttl=settings.CACHE_TTL)
