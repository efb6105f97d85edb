"""
Redis caching utilities for the application.
"""
from typing import Optional, Dict, Any, Union
import json
import logging
import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)

class RedisClient:
    """Redis client wrapper with connection pooling and error handling.

    Cache failures are logged and treated as misses; the cache never decides
    the outcome of a request.
    """

    def __init__(self, url: str, client: Optional[redis.Redis] = None):
        """Initialize the Redis client.

        Args:
            url: Redis connection URL
            client: Pre-built client, mainly for tests
        """
        self._url = url
        self._redis = client or redis.Redis.from_url(
            url,
            password=settings.REDIS_PASSWORD,
            db=settings.REDIS_DB,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
            retry_on_timeout=settings.REDIS_RETRY_ON_TIMEOUT,
            decode_responses=True,
        )

    @property
    def redis(self) -> redis.Redis:
        return self._redis

    async def ping(self) -> bool:
        return await self._redis.ping()

    async def close(self):
        """Close the Redis connection pool."""
        await self._redis.aclose()

    async def get(self, key: str) -> Optional[Any]:
        """Get a JSON value from Redis.

        Args:
            key: Cache key

        Returns:
            The cached value or None if not found
        """
        try:
            value = await self._redis.get(key)
            return json.loads(value) if value else None
        except redis.RedisError as e:
            logger.warning(f"Redis get operation failed: {str(e)}")
            return None

    async def set(self, key: str, value: Union[Dict[str, Any], Any], expire: int = 3600) -> bool:
        """Set a value in Redis.

        Args:
            key: Cache key
            value: Value to cache (dict or Pydantic model)
            expire: Expiration time in seconds

        Returns:
            True if successful, False otherwise
        """
        try:
            serialized = json.dumps(value.model_dump(mode="json") if hasattr(value, 'model_dump') else value)
            return bool(await self._redis.set(key, serialized, ex=expire))
        except redis.RedisError as e:
            logger.warning(f"Redis set operation failed: {str(e)}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key from Redis.

        Args:
            key: Cache key to delete

        Returns:
            True if the key was deleted, False if it didn't exist
        """
        try:
            return await self._redis.delete(key) > 0
        except redis.RedisError as e:
            logger.warning(f"Redis delete operation failed: {str(e)}")
            return False


# Global Redis client instance
_redis_client = None


def get_redis() -> Optional[RedisClient]:
    """Return the shared client, or None when Redis is disabled."""
    if not settings.ENABLE_REDIS:
        return None
    global _redis_client
    if _redis_client is None:
        if not settings.REDIS_URL:
            raise RuntimeError("REDIS_URL is not configured in settings")
        _redis_client = RedisClient(settings.REDIS_URL)
    return _redis_client


async def init_redis():
    """Initialize the Redis connection."""
    client = get_redis()
    if client is not None:
        await client.ping()


async def close_redis():
    """Close the Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None
