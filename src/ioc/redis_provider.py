"""
Rate-limit store provider for dependency injection.
"""

from typing import AsyncIterable

from dishka import Provider, Scope, provide

from src.core.logging import get_logger
from src.core.redis_config import redis_config
from src.infrastructure.redis_client import RedisClient, create_redis_client
from src.repositories.rate_limiter_repository import (
    InMemoryRateLimiterRepository,
    RateLimiterRepository,
    RedisRateLimiterRepository,
)
from src.services.rate_limiter_service import RateLimiterService

logger = get_logger(__name__)


class RedisProvider(Provider):
    """
    Provider for the rate-limit store.

    The store holds the only shared mutable state of the API, so it lives at
    APP scope. ``RATE_LIMIT_BACKEND=redis`` selects the Redis store shared by
    every process; the default is a process-local in-memory store.
    """

    @provide(scope=Scope.APP)
    async def get_rate_limiter_repository(self) -> AsyncIterable[RateLimiterRepository]:
        """
        Provide rate limiter repository.

        Yields:
            RateLimiterRepository for the configured backend
        """
        if not redis_config.use_redis:
            logger.info("rate_limit_store_selected", backend="memory")
            yield InMemoryRateLimiterRepository()
            return

        redis_client = RedisClient(await create_redis_client())
        logger.info("rate_limit_store_selected", backend="redis", url=redis_config.REDIS_HOST)
        try:
            yield RedisRateLimiterRepository(redis_client, prefix=redis_config.RATE_LIMIT_KEY_PREFIX)
        finally:
            await redis_client.close()

    @provide(scope=Scope.APP)
    def get_rate_limiter_service(
            self, repository: RateLimiterRepository
    ) -> RateLimiterService:
        """
        Provide rate limiter service.

        Args:
            repository: Rate limiter repository

        Returns:
            RateLimiterService instance
        """
        return RateLimiterService(
            repository,
            enabled=redis_config.RATE_LIMIT_ENABLED,
            violation_window_ms=redis_config.RATE_LIMIT_VIOLATION_WINDOW_SECONDS * 1000,
        )
