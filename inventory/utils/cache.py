import json
import logging
import math
import time
from typing import Optional, Any

import redis

from inventory.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Create Redis client
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


class CacheService:
    """
    Redis cache service for the Products read-through cache.

    Every entry carries an absolute deadline and an optional sliding window:
    - the Redis key TTL is the sliding window (or the absolute TTL)
    - each hit pushes the key TTL forward, but never past the deadline
    - an entry read after its deadline is treated as absent and removed

    Redis failures degrade to cache misses so the store is always the
    fallback.
    """

    def __init__(self, client: redis.Redis = None, ttl: int = None):
        self.client = client or redis_client
        self.ttl = ttl or settings.CACHE_SHORT_TTL

    def _make_key(self, prefix: str, key: str) -> str:
        """Create a namespaced cache key."""
        return f"{prefix}:{key}"

    def get(self, prefix: str, key: str) -> Optional[Any]:
        """
        Get a value from cache, refreshing its sliding window.

        Args:
            prefix: Cache key prefix (e.g., 'product')
            key: Unique identifier

        Returns:
            Cached value or None if not found or expired
        """
        cache_key = self._make_key(prefix, key)
        try:
            raw = self.client.get(cache_key)
            if not raw:
                return None
            entry = json.loads(raw)
            remaining = entry["expires_at"] - time.time()
            if remaining <= 0:
                self.client.delete(cache_key)
                return None
            sliding = entry.get("sliding")
            if sliding:
                self.client.expire(cache_key, math.ceil(min(sliding, remaining)))
            return entry["value"]
        except (redis.RedisError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Cache read failed for {cache_key}: {e}")
            return None

    def set(
        self,
        prefix: str,
        key: str,
        value: Any,
        ttl: int = None,
        sliding: int = None,
    ) -> bool:
        """
        Set a value in cache.

        Args:
            prefix: Cache key prefix
            key: Unique identifier
            value: Value to cache (will be JSON serialized)
            ttl: Absolute time to live in seconds (defaults to the short tier)
            sliding: Sliding expiration window in seconds, if any

        Returns:
            True if successful, False otherwise
        """
        cache_key = self._make_key(prefix, key)
        ttl = ttl or self.ttl
        entry = {"expires_at": time.time() + ttl, "sliding": sliding, "value": value}
        try:
            serialized = json.dumps(entry, default=str)
            self.client.set(cache_key, serialized, ex=min(sliding, ttl) if sliding else ttl)
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Cache write failed for {cache_key}: {e}")
            return False

    def delete(self, prefix: str, key: str) -> bool:
        """
        Delete a value from cache.

        Args:
            prefix: Cache key prefix
            key: Unique identifier

        Returns:
            True if deleted, False otherwise
        """
        cache_key = self._make_key(prefix, key)
        try:
            self.client.delete(cache_key)
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache delete failed for {cache_key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Redis key pattern (e.g., 'product_list:*')

        Returns:
            Number of keys deleted
        """
        try:
            keys = self.client.keys(pattern)
            if keys:
                return self.client.delete(*keys)
            return 0
        except redis.RedisError as e:
            logger.warning(f"Cache sweep failed for {pattern}: {e}")
            return 0

    def ping(self) -> bool:
        """Check the Redis connection."""
        return bool(self.client.ping())


# Singleton cache service instance
cache_service = CacheService()
