"""
Redis and rate limiting configuration settings.
"""

from pydantic_settings import BaseSettings


class RedisConfig(BaseSettings):
    """Redis configuration."""

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_DECODE_RESPONSES: bool = True
    REDIS_MAX_CONNECTIONS: int = 10

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_BACKEND: str = "memory"  # memory | redis
    RATE_LIMIT_KEY_PREFIX: str = "rate_limit"
    RATE_LIMIT_VIOLATION_WINDOW_SECONDS: int = 24 * 60 * 60

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def use_redis(self) -> bool:
        return self.RATE_LIMIT_BACKEND.lower() == "redis"

    @property
    def redis_url(self) -> str:
        """Get Redis connection URL."""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


redis_config = RedisConfig()
