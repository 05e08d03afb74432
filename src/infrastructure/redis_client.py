"""
Redis client abstraction used by the shared rate-limit store.
"""

from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from src.core.logging import get_logger
from src.core.redis_config import redis_config

logger = get_logger(__name__)


class RedisClient:
    """Async Redis client wrapper."""

    def __init__(self, redis_instance: Redis):
        """
        Initialize Redis client.

        Args:
            redis_instance: Redis connection instance
        """
        self._redis = redis_instance

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except Exception as e:
            logger.error("redis_get_error", key=key, error=str(e))
            raise

    async def incr(self, key: str) -> int:
        """
        Increment value in Redis.

        Returns:
            New value after increment
        """
        try:
            return await self._redis.incr(key)
        except Exception as e:
            logger.error("redis_incr_error", key=key, error=str(e))
            raise

    async def pexpire(self, key: str, milliseconds: int) -> bool:
        """Set expiration on key, in milliseconds."""
        try:
            return await self._redis.pexpire(key, milliseconds)
        except Exception as e:
            logger.error("redis_pexpire_error", key=key, error=str(e))
            raise

    async def pttl(self, key: str) -> int:
        """
        Get remaining time to live for key.

        Returns:
            TTL in milliseconds, -1 if no expiration, -2 if key doesn't exist
        """
        try:
            return await self._redis.pttl(key)
        except Exception as e:
            logger.error("redis_pttl_error", key=key, error=str(e))
            raise

    async def delete(self, *keys: str) -> int:
        try:
            return await self._redis.delete(*keys)
        except Exception as e:
            logger.error("redis_delete_error", keys=keys, error=str(e))
            raise

    async def scan_keys(self, pattern: str) -> list[str]:
        """Collect keys matching *pattern* with SCAN (never KEYS)."""
        try:
            return [key async for key in self._redis.scan_iter(match=pattern, count=500)]
        except Exception as e:
            logger.error("redis_scan_error", pattern=pattern, error=str(e))
            raise

    async def ping(self) -> bool:
        """
        Ping Redis to check connection.

        Returns:
            True if connected
        """
        try:
            return await self._redis.ping()
        except Exception as e:
            logger.error("redis_ping_error", error=str(e))
            return False

    async def close(self):
        """Close Redis connection."""
        await self._redis.aclose()


async def create_redis_client() -> Redis:
    """
    Create Redis connection.

    Returns:
        Redis client instance
    """
    return redis.from_url(
        redis_config.redis_url,
        encoding="utf-8",
        decode_responses=redis_config.REDIS_DECODE_RESPONSES,
        max_connections=redis_config.REDIS_MAX_CONNECTIONS,
    )
