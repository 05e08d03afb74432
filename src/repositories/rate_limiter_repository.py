"""
Rate limit counter stores.

``RateLimiterRepository`` is the only way to reach the counter table. The
in-memory store suits a single process; the Redis store is shared by every
instance of a multi-process deployment.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from redis.exceptions import RedisError

from src.core.logging import get_logger
from src.dtos.rate_limit_dto import RateLimitEntry, RateLimitStoreUnavailable
from src.infrastructure.redis_client import RedisClient

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiterRepository(ABC):
    """Fixed-window counter store keyed by rendered ``RateLimitKey`` strings."""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock

    @abstractmethod
    async def hit(self, key: str, window_ms: int, sliding: bool = False) -> RateLimitEntry:
        """
        Atomically count one request for *key* and return the updated entry.

        A new window ``[now, now + window_ms)`` starts when the key is unknown
        or its window has elapsed. With *sliding* the window end is pushed to
        ``now + window_ms`` on every hit (used for quiet-period counters).

        Raises:
            RateLimitStoreUnavailable: If the backend cannot be reached
        """

    @abstractmethod
    async def get(self, key: str) -> Optional[RateLimitEntry]:
        """Return the live entry for *key*, or None if absent or expired."""

    @abstractmethod
    async def reset(self, *keys: str) -> int:
        """Delete *keys*; returns how many existed."""

    @abstractmethod
    async def list_entries(self) -> list[RateLimitEntry]:
        """Return every live entry."""

    @abstractmethod
    async def sweep(self) -> int:
        """Evict expired entries; returns how many were removed."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the store is reachable."""


class InMemoryRateLimiterRepository(RateLimiterRepository):
    """
    Process-local store.

    Increment-and-read runs under an ``asyncio.Lock`` so concurrent requests
    sharing a key observe strictly increasing counts. Expired entries are
    swept lazily on every hit, which bounds memory growth without a
    background task. State is lost on restart.
    """

    def __init__(self, clock: Clock = utc_now):
        super().__init__(clock)
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, window_ms: int, sliding: bool = False) -> RateLimitEntry:
        window = timedelta(milliseconds=window_ms)

        async with self._lock:
            now = self.clock()
            self._sweep_locked(now)

            entry = self._entries.get(key)
            if entry is None:
                entry = RateLimitEntry(
                    key=key,
                    count=1,
                    window_started_at=now,
                    window_reset_at=now + window,
                    last_request_at=now,
                )
                self._entries[key] = entry
            else:
                entry.count += 1
                entry.last_request_at = now
                if sliding:
                    entry.window_reset_at = now + window

            return replace(entry)

    async def get(self, key: str) -> Optional[RateLimitEntry]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(self.clock()):
                return None
            return replace(entry)

    async def reset(self, *keys: str) -> int:
        async with self._lock:
            removed = 0
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    removed += 1
            return removed

    async def list_entries(self) -> list[RateLimitEntry]:
        async with self._lock:
            now = self.clock()
            return [replace(e) for e in self._entries.values() if not e.is_expired(now)]

    async def sweep(self) -> int:
        async with self._lock:
            return self._sweep_locked(self.clock())

    async def ping(self) -> bool:
        return True

    def _sweep_locked(self, now: datetime) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("rate_limit_entries_swept", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RedisRateLimiterRepository(RateLimiterRepository):
    """
    Store shared across processes.

    ``INCR`` is atomic; the window is attached with ``PEXPIRE`` on the first
    hit and read back with ``PTTL``, so Redis evicts expired keys itself.
    """

    def __init__(self, redis_client: RedisClient, prefix: str = "rate_limit", clock: Clock = utc_now):
        super().__init__(clock)
        self.redis = redis_client
        self.prefix = prefix

    def _redis_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _entry(self, key: str, count: int, ttl_ms: int, window_ms: Optional[int], now: datetime) -> RateLimitEntry:
        reset_at = now + timedelta(milliseconds=max(ttl_ms, 0))
        started_at = reset_at - timedelta(milliseconds=window_ms) if window_ms else now
        return RateLimitEntry(
            key=key,
            count=count,
            window_started_at=started_at,
            window_reset_at=reset_at,
            last_request_at=now,
        )

    async def hit(self, key: str, window_ms: int, sliding: bool = False) -> RateLimitEntry:
        redis_key = self._redis_key(key)
        try:
            count = await self.redis.incr(redis_key)

            if count == 1 or sliding:
                await self.redis.pexpire(redis_key, window_ms)
                ttl_ms = window_ms
            else:
                ttl_ms = await self.redis.pttl(redis_key)
                if ttl_ms < 0:
                    # Key lost its expiry (e.g. crash between INCR and PEXPIRE)
                    await self.redis.pexpire(redis_key, window_ms)
                    ttl_ms = window_ms
        except (RedisError, OSError) as e:
            raise RateLimitStoreUnavailable("Rate limit store unavailable", e) from e

        logger.debug("rate_limit_incremented", key=key, count=count, ttl_ms=ttl_ms)
        return self._entry(key, count, ttl_ms, window_ms, self.clock())

    async def get(self, key: str) -> Optional[RateLimitEntry]:
        redis_key = self._redis_key(key)
        try:
            value = await self.redis.get(redis_key)
            if value is None:
                return None
            ttl_ms = await self.redis.pttl(redis_key)
        except (RedisError, OSError) as e:
            raise RateLimitStoreUnavailable("Rate limit store unavailable", e) from e

        return self._entry(key, int(value), ttl_ms, None, self.clock())

    async def reset(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self.redis.delete(*(self._redis_key(k) for k in keys))
        except (RedisError, OSError) as e:
            raise RateLimitStoreUnavailable("Rate limit store unavailable", e) from e

    async def list_entries(self) -> list[RateLimitEntry]:
        try:
            redis_keys = await self.redis.scan_keys(f"{self.prefix}:*")
        except (RedisError, OSError) as e:
            raise RateLimitStoreUnavailable("Rate limit store unavailable", e) from e

        entries = []
        offset = len(self.prefix) + 1
        for redis_key in redis_keys:
            entry = await self.get(redis_key[offset:])
            if entry is not None:
                entries.append(entry)
        return entries

    async def sweep(self) -> int:
        # Expiry is handled by Redis TTLs
        return 0

    async def ping(self) -> bool:
        return await self.redis.ping()
