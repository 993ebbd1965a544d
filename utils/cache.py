import redis
import json
import logging
from typing import Optional, Any

logger = logging.getLogger(__name__)

# Cache TTL settings (in seconds)
CACHE_TTL_SHORT = 120  # 2 minutes
CACHE_TTL_MEDIUM = 600  # 10 minutes

redis_client: Optional[redis.Redis] = None


def init_redis(app):
    """Connect the shared Redis client from app config; caching and realtime stay off without it."""
    global redis_client

    url = app.config.get('REDIS_URL')
    if not url:
        logger.info("REDIS_URL not set; caching and live message feed disabled")
        redis_client = None
        return None

    try:
        client = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=5)
        client.ping()
        logger.info("Redis connected at %s", url)
        redis_client = client
    except redis.RedisError as e:
        logger.warning("Redis connection failed: %s. Caching will be disabled.", e)
        redis_client = None
    return redis_client


def get_redis() -> Optional[redis.Redis]:
    return redis_client


class CacheManager:
    """Manager for Redis caching operations"""

    @staticmethod
    def is_available() -> bool:
        return redis_client is not None

    @staticmethod
    def get(key: str) -> Optional[Any]:
        """
        Get value from cache

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/error
        """
        if not CacheManager.is_available():
            return None

        try:
            value = redis_client.get(key)
            if value:
                return json.loads(value)
            return None
        except redis.RedisError as e:
            logger.error(f"Cache get error for key '{key}': {str(e)}")
            return None

    @staticmethod
    def set(key: str, value: Any, ttl: int = CACHE_TTL_MEDIUM) -> bool:
        if not CacheManager.is_available():
            return False

        try:
            redis_client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"Cached key '{key}' with TTL {ttl}s")
            return True
        except redis.RedisError as e:
            logger.error(f"Cache set error for key '{key}': {str(e)}")
            return False

    @staticmethod
    def delete_pattern(pattern: str) -> int:
        """
        Delete all keys matching a pattern

        Args:
            pattern: Pattern to match (e.g., 'discover:123:*')

        Returns:
            Number of keys deleted
        """
        if not CacheManager.is_available():
            return 0

        try:
            keys = list(redis_client.scan_iter(match=pattern))
            if keys:
                deleted = redis_client.delete(*keys)
                logger.debug(f"Deleted {deleted} cache keys matching '{pattern}'")
                return deleted
            return 0
        except redis.RedisError as e:
            logger.error(f"Cache delete pattern error for '{pattern}': {str(e)}")
            return 0

    @staticmethod
    def invalidate_user_cache(*user_ids: str):
        """Drop cached discovery decks for the given users"""
        for user_id in user_ids:
            CacheManager.delete_pattern(f"discover:{user_id}:*")


def build_discover_cache_key(user_id: str, limit: int) -> str:
    return f"discover:{user_id}:{limit}"


def invalidate_discovery_everywhere():
    """A profile left or re-entered the pool; every cached deck may be stale"""
    CacheManager.delete_pattern("discover:*")
