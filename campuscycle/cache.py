"""
Redis-backed cache helpers.
Every helper is a no-op when Redis is not configured.
"""
import json
from typing import Any, Optional
from . import core
import logging

logger = logging.getLogger(__name__)

class CacheManager:
    """Thin key/value layer over the shared Redis client"""

    def __init__(self):
        self.default_ttl = 3600  # 1 hour default TTL

    def _make_key(self, key: str, prefix: str = "") -> str:
        """Generate cache key with prefix"""
        if prefix:
            return f"{prefix}:{key}"
        return key

    async def set(self, key: str, value: Any, ttl: int = None, prefix: str = "") -> bool:
        """Set cache value with TTL"""
        if not core.REDIS:
            return False

        cache_key = self._make_key(key, prefix)
        ttl = ttl or self.default_ttl

        try:
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            await core.REDIS.setex(cache_key, ttl, value)
            return True
        except Exception as e:
            logger.error(f"Cache set failed for key {cache_key}: {str(e)}")
            return False

    async def get(self, key: str, prefix: str = "") -> Optional[Any]:
        """Get cache value"""
        if not core.REDIS:
            return None

        cache_key = self._make_key(key, prefix)

        try:
            value = await core.REDIS.get(cache_key)
            if value is None:
                return None
            try:
                return json.loads(value)
            except (json.JSONDecodeError, TypeError):
                return value.decode() if isinstance(value, bytes) else value
        except Exception as e:
            logger.error(f"Cache get failed for key {cache_key}: {str(e)}")
            return None

    async def delete(self, key: str, prefix: str = "") -> bool:
        """Delete cache key"""
        if not core.REDIS:
            return False

        cache_key = self._make_key(key, prefix)

        try:
            result = await core.REDIS.delete(cache_key)
            return result > 0
        except Exception as e:
            logger.error(f"Cache delete failed for key {cache_key}: {str(e)}")
            return False

    async def increment(self, key: str, amount: int = 1, prefix: str = "") -> Optional[int]:
        """Increment cache value atomically"""
        if not core.REDIS:
            return None

        cache_key = self._make_key(key, prefix)

        try:
            return await core.REDIS.incrby(cache_key, amount)
        except Exception as e:
            logger.error(f"Cache increment failed for key {cache_key}: {str(e)}")
            return None

# Global cache manager instance
cache = CacheManager()

# Campus directory is read on every registration form load
async def cache_campuses(campuses: list, ttl: int = 600):
    return await cache.set("all", campuses, ttl, "campuses")

async def get_cached_campuses() -> Optional[list]:
    return await cache.get("all", "campuses")

async def invalidate_campuses_cache():
    await cache.delete("all", "campuses")

# Rate limiting functions
async def check_rate_limit(user_id: int, action: str, limit: int = 100, window: int = 3600) -> bool:
    """Check if user is within rate limit"""
    key = f"rate_limit:{user_id}:{action}"

    current = await cache.get(key, "rate")
    if current is None:
        await cache.set(key, 1, window, "rate")
        return True

    if int(current) >= limit:
        return False

    await cache.increment(key, 1, "rate")
    return True
