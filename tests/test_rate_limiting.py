"""
Tests for rate limiting functionality.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from src.dtos.rate_limit_dto import (
    FailurePolicy,
    IdentityKind,
    RateLimitKey,
    RateLimitLevel,
    RateLimitStoreUnavailable,
)
from src.infrastructure.redis_client import RedisClient
from src.repositories.rate_limiter_repository import (
    InMemoryRateLimiterRepository,
    RateLimiterRepository,
    RedisRateLimiterRepository,
)
from src.services.rate_limiter_service import (
    DEFAULT_PROGRESSIVE_LEVELS,
    MINUTE_MS,
    RateLimiterService,
)

WINDOW_MS = 15 * MINUTE_MS


@pytest.fixture
def mock_redis_client():
    """Create mock Redis client."""
    client = AsyncMock(spec=RedisClient)
    return client


@pytest.fixture
def redis_repository(mock_redis_client, clock):
    """Create Redis rate limiter repository with mock Redis."""
    return RedisRateLimiterRepository(mock_redis_client, prefix="rate_limit", clock=clock)


@pytest.fixture
def memory_repository(clock):
    return InMemoryRateLimiterRepository(clock=clock)


@pytest.fixture
def rate_limiter_service(memory_repository):
    """Create rate limiter service over the in-memory store."""
    return RateLimiterService(memory_repository)


@pytest.fixture
def failing_repository():
    repository = AsyncMock(spec=RateLimiterRepository)
    repository.hit.side_effect = RateLimitStoreUnavailable("down")
    repository.get.side_effect = RateLimitStoreUnavailable("down")
    return repository


class TestRateLimitKey:
    """Typed keys render with purpose and identity kind."""

    def test_rendering(self):
        assert str(RateLimitKey.for_ip("login", " 10.0.0.1 ")) == "login:ip:10.0.0.1"
        assert str(RateLimitKey.for_user("orders", "u1")) == "orders:user:u1"
        assert str(RateLimitKey.for_email("forgot", " A@B.co ")) == "forgot:email:a@b.co"

    def test_unknown_ip(self):
        assert RateLimitKey.for_ip("login", None).identity == "unknown"

    def test_violations_companion_key(self):
        key = RateLimitKey.for_ip("forgot-password", "1.2.3.4")

        assert str(key.violations) == "forgot-password:violations:ip:1.2.3.4"
        assert key.violations.identity_kind == IdentityKind.IP

    def test_purposes_never_collide(self):
        assert str(RateLimitKey.for_ip("login", "1.2.3.4")) != str(RateLimitKey.for_email("login", "1.2.3.4"))


class TestInMemoryRateLimiterRepository:
    """Test the process-local store."""

    @pytest.mark.asyncio
    async def test_first_hit_starts_window(self, memory_repository, clock):
        entry = await memory_repository.hit("k", WINDOW_MS)

        assert entry.count == 1
        assert entry.window_started_at == clock.now
        assert (entry.window_reset_at - entry.window_started_at).total_seconds() == 15 * 60

    @pytest.mark.asyncio
    async def test_hits_increment_within_window(self, memory_repository, clock):
        await memory_repository.hit("k", WINDOW_MS)
        clock.advance(minutes=5)
        entry = await memory_repository.hit("k", WINDOW_MS)

        assert entry.count == 2
        assert entry.last_request_at == clock.now

    @pytest.mark.asyncio
    async def test_window_resets_after_expiry(self, memory_repository, clock):
        await memory_repository.hit("k", WINDOW_MS)
        await memory_repository.hit("k", WINDOW_MS)
        clock.advance(minutes=15)

        entry = await memory_repository.hit("k", WINDOW_MS)

        assert entry.count == 1
        assert entry.window_started_at == clock.now

    @pytest.mark.asyncio
    async def test_sliding_window_extends_on_each_hit(self, memory_repository, clock):
        await memory_repository.hit("v", WINDOW_MS, sliding=True)
        clock.advance(minutes=10)
        await memory_repository.hit("v", WINDOW_MS, sliding=True)
        clock.advance(minutes=10)

        entry = await memory_repository.get("v")

        assert entry is not None
        assert entry.count == 2

    @pytest.mark.asyncio
    async def test_lazy_sweep_evicts_expired_entries(self, memory_repository, clock):
        await memory_repository.hit("old", MINUTE_MS)
        clock.advance(minutes=2)

        await memory_repository.hit("new", MINUTE_MS)

        assert len(memory_repository) == 1
        assert await memory_repository.get("old") is None

    @pytest.mark.asyncio
    async def test_returned_entries_are_copies(self, memory_repository):
        entry = await memory_repository.hit("k", WINDOW_MS)
        entry.count = 99

        assert (await memory_repository.get("k")).count == 1

    @pytest.mark.asyncio
    async def test_reset_and_list(self, memory_repository):
        await memory_repository.hit("a", WINDOW_MS)
        await memory_repository.hit("b", WINDOW_MS)

        assert await memory_repository.reset("a", "missing") == 1
        assert [e.key for e in await memory_repository.list_entries()] == ["b"]

    @pytest.mark.asyncio
    async def test_concurrent_hits_are_serialized(self, memory_repository):
        entries = await asyncio.gather(*(memory_repository.hit("k", WINDOW_MS) for _ in range(50)))

        assert sorted(e.count for e in entries) == list(range(1, 51))


class TestRedisRateLimiterRepository:
    """Test the Redis-backed store against a mock client."""

    @pytest.mark.asyncio
    async def test_first_hit_sets_expiry(self, redis_repository, mock_redis_client):
        mock_redis_client.incr.return_value = 1

        entry = await redis_repository.hit("login:ip:1.2.3.4", WINDOW_MS)

        assert entry.count == 1
        mock_redis_client.incr.assert_awaited_once_with("rate_limit:login:ip:1.2.3.4")
        mock_redis_client.pexpire.assert_awaited_once_with("rate_limit:login:ip:1.2.3.4", WINDOW_MS)

    @pytest.mark.asyncio
    async def test_subsequent_hit_reads_ttl(self, redis_repository, mock_redis_client, clock):
        mock_redis_client.incr.return_value = 5
        mock_redis_client.pttl.return_value = 60_000

        entry = await redis_repository.hit("k", WINDOW_MS)

        assert entry.count == 5
        assert (entry.window_reset_at - clock.now).total_seconds() == 60
        mock_redis_client.pexpire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_ttl_is_repaired(self, redis_repository, mock_redis_client):
        mock_redis_client.incr.return_value = 3
        mock_redis_client.pttl.return_value = -1

        await redis_repository.hit("k", WINDOW_MS)

        mock_redis_client.pexpire.assert_awaited_once_with("rate_limit:k", WINDOW_MS)

    @pytest.mark.asyncio
    async def test_redis_errors_become_store_unavailable(self, redis_repository, mock_redis_client):
        mock_redis_client.incr.side_effect = RedisConnectionError("refused")

        with pytest.raises(RateLimitStoreUnavailable):
            await redis_repository.hit("k", WINDOW_MS)

    @pytest.mark.asyncio
    async def test_get_missing_key(self, redis_repository, mock_redis_client):
        mock_redis_client.get.return_value = None

        assert await redis_repository.get("k") is None

    @pytest.mark.asyncio
    async def test_list_entries_strips_prefix(self, redis_repository, mock_redis_client):
        mock_redis_client.scan_keys.return_value = ["rate_limit:login:ip:1.2.3.4"]
        mock_redis_client.get.return_value = "4"
        mock_redis_client.pttl.return_value = 1000

        entries = await redis_repository.list_entries()

        assert [(e.key, e.count) for e in entries] == [("login:ip:1.2.3.4", 4)]
        mock_redis_client.scan_keys.assert_awaited_once_with("rate_limit:*")

    @pytest.mark.asyncio
    async def test_reset_rate_limits(self, redis_repository, mock_redis_client):
        """Test resetting rate limits."""
        mock_redis_client.delete.return_value = 2

        deleted = await redis_repository.reset("a", "b")

        assert deleted == 2
        mock_redis_client.delete.assert_awaited_once_with("rate_limit:a", "rate_limit:b")


class TestRateLimiterService:
    """Test fixed-window decisions."""

    @pytest.mark.asyncio
    async def test_allows_up_to_max_then_denies(self, rate_limiter_service):
        key = RateLimitKey.for_ip("login", "1.2.3.4")

        results = [await rate_limiter_service.check_rate_limit(key, 3, WINDOW_MS) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[-1].total == 4
        assert results[-1].retry_after_ms == WINDOW_MS
        assert results[-1].retry_after_seconds == 15 * 60
        assert results[0].retry_after_ms is None

    @pytest.mark.asyncio
    async def test_denied_requests_keep_counting(self, rate_limiter_service):
        key = RateLimitKey.for_ip("login", "1.2.3.4")

        for _ in range(5):
            result = await rate_limiter_service.check_rate_limit(key, 1, WINDOW_MS)

        assert result.total == 5
        assert result.allowed is False

    @pytest.mark.asyncio
    async def test_allowed_again_after_window(self, rate_limiter_service, clock):
        key = RateLimitKey.for_ip("login", "1.2.3.4")
        await rate_limiter_service.check_rate_limit(key, 1, WINDOW_MS)
        assert not (await rate_limiter_service.check_rate_limit(key, 1, WINDOW_MS)).allowed

        clock.advance(minutes=15)

        assert (await rate_limiter_service.check_rate_limit(key, 1, WINDOW_MS)).allowed

    @pytest.mark.asyncio
    async def test_distinct_keys_are_independent(self, rate_limiter_service):
        first = RateLimitKey.for_ip("login", "1.1.1.1")
        second = RateLimitKey.for_ip("login", "2.2.2.2")

        await rate_limiter_service.check_rate_limit(first, 1, WINDOW_MS)
        denied = await rate_limiter_service.check_rate_limit(first, 1, WINDOW_MS)
        other = await rate_limiter_service.check_rate_limit(second, 1, WINDOW_MS)

        assert denied.allowed is False
        assert other.allowed is True

    @pytest.mark.asyncio
    async def test_retry_after_shrinks_with_time(self, rate_limiter_service, clock):
        key = RateLimitKey.for_ip("login", "1.2.3.4")
        await rate_limiter_service.check_rate_limit(key, 1, WINDOW_MS)
        clock.advance(minutes=10)

        result = await rate_limiter_service.check_rate_limit(key, 1, WINDOW_MS)

        assert result.retry_after_ms == 5 * MINUTE_MS

    @pytest.mark.asyncio
    async def test_disabled_service_is_permissive(self, memory_repository):
        service = RateLimiterService(memory_repository, enabled=False)
        key = RateLimitKey.for_ip("login", "1.2.3.4")

        for _ in range(5):
            result = await service.check_rate_limit(key, 1, WINDOW_MS)

        assert result.allowed is True
        assert len(memory_repository) == 0

    @pytest.mark.asyncio
    async def test_fail_open_when_store_unavailable(self, failing_repository, clock):
        failing_repository.clock = clock
        service = RateLimiterService(failing_repository)

        result = await service.check_rate_limit(
            RateLimitKey.for_ip("reads", "1.2.3.4"), 10, WINDOW_MS, FailurePolicy.OPEN
        )

        assert result.allowed is True
        assert result.degraded is True

    @pytest.mark.asyncio
    async def test_fail_closed_when_store_unavailable(self, failing_repository, clock):
        failing_repository.clock = clock
        service = RateLimiterService(failing_repository)

        result = await service.check_rate_limit(
            RateLimitKey.for_ip("login", "1.2.3.4"), 10, WINDOW_MS, FailurePolicy.CLOSED
        )

        assert result.allowed is False
        assert result.degraded is True
        assert result.retry_after_ms is not None


class TestProgressiveRateLimit:
    """Limits tighten with repeated violations."""

    @pytest.mark.asyncio
    async def test_level_zero_allows_three_attempts(self, rate_limiter_service):
        key = RateLimitKey.for_ip("forgot-password", "1.2.3.4")

        results = [await rate_limiter_service.check_progressive_rate_limit(key) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert all(r.level == 0 for r in results)
        assert results[0].limit == 3

    @pytest.mark.asyncio
    async def test_violations_raise_the_level(self, rate_limiter_service, clock):
        key = RateLimitKey.for_ip("forgot-password", "1.2.3.4")
        for _ in range(4):
            await rate_limiter_service.check_progressive_rate_limit(key)

        clock.advance(minutes=15)
        result = await rate_limiter_service.check_progressive_rate_limit(key)

        assert result.level == 1
        assert result.limit == 2
        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_level_is_capped_at_last_schedule_entry(self, memory_repository):
        levels = (RateLimitLevel(window_ms=MINUTE_MS, max_requests=1), RateLimitLevel(window_ms=MINUTE_MS, max_requests=1))
        service = RateLimiterService(memory_repository)
        key = RateLimitKey.for_ip("otp", "1.2.3.4")

        for _ in range(10):
            result = await service.check_progressive_rate_limit(key, levels)

        assert result.level == 1
        assert (await memory_repository.get(str(key.violations))).count == 9

    @pytest.mark.asyncio
    async def test_violations_expire_after_quiet_period(self, rate_limiter_service, clock):
        key = RateLimitKey.for_ip("forgot-password", "1.2.3.4")
        for _ in range(4):
            await rate_limiter_service.check_progressive_rate_limit(key)

        clock.advance(hours=25)
        result = await rate_limiter_service.check_progressive_rate_limit(key)

        assert result.level == 0
        assert result.limit == DEFAULT_PROGRESSIVE_LEVELS[0].max_requests

    @pytest.mark.asyncio
    async def test_progressive_fails_closed_by_default(self, failing_repository, clock):
        failing_repository.clock = clock
        service = RateLimiterService(failing_repository)

        result = await service.check_progressive_rate_limit(RateLimitKey.for_ip("forgot-password", "1.2.3.4"))

        assert result.allowed is False
        assert result.degraded is True
        assert result.level == 0

    @pytest.mark.asyncio
    async def test_empty_schedule_is_rejected(self, rate_limiter_service):
        with pytest.raises(ValueError):
            await rate_limiter_service.check_progressive_rate_limit(RateLimitKey.for_ip("x", "1"), ())


class TestAdministration:
    """Status, reset and overview for the admin API."""

    @pytest.mark.asyncio
    async def test_get_status_does_not_count(self, rate_limiter_service):
        key = RateLimitKey.for_ip("login", "1.2.3.4")
        await rate_limiter_service.check_rate_limit(key, 5, WINDOW_MS)

        first = await rate_limiter_service.get_status(str(key))
        second = await rate_limiter_service.get_status(str(key))

        assert first.count == second.count == 1

    @pytest.mark.asyncio
    async def test_reset_clears_counter_and_violations(self, rate_limiter_service, memory_repository):
        key = RateLimitKey.for_ip("forgot-password", "1.2.3.4")
        for _ in range(4):
            await rate_limiter_service.check_progressive_rate_limit(key)

        deleted = await rate_limiter_service.reset_limits(str(key))

        assert deleted == 2
        assert await memory_repository.list_entries() == []

    @pytest.mark.asyncio
    async def test_overview_statistics_and_filters(self, rate_limiter_service):
        noisy = RateLimitKey.for_ip("login", "9.9.9.9")
        for _ in range(12):
            await rate_limiter_service.check_rate_limit(noisy, 5, WINDOW_MS)
        await rate_limiter_service.check_rate_limit(RateLimitKey.for_user("orders", "u1"), 5, WINDOW_MS)
        for _ in range(4):
            await rate_limiter_service.check_progressive_rate_limit(RateLimitKey.for_ip("forgot-password", "1.2.3.4"))

        overview = await rate_limiter_service.get_overview()

        assert overview.total_active_keys == 4
        assert overview.total_requests == 12 + 1 + 4 + 1
        assert overview.max_requests_per_key == 12
        assert [e.key for e in overview.top_violators] == ["login:ip:9.9.9.9"]
        assert [e.key for e in overview.violation_patterns] == ["forgot-password:violations:ip:1.2.3.4"]

        violations = await rate_limiter_service.get_overview("violations")
        assert violations.total_records == 1

        login_only = await rate_limiter_service.get_overview("login")
        assert [e.key for e in login_only.entries] == ["login:ip:9.9.9.9"]

    @pytest.mark.asyncio
    async def test_overview_pagination(self, rate_limiter_service, clock):
        for i in range(5):
            await rate_limiter_service.check_rate_limit(RateLimitKey.for_ip("api", f"10.0.0.{i}"), 5, WINDOW_MS)
            clock.advance(seconds=1)

        page = await rate_limiter_service.get_overview(page=2, limit=2)

        assert page.total_records == 5
        # Most recent first: .4 .3 | .2 .1 | .0
        assert [e.key for e in page.entries] == ["api:ip:10.0.0.2", "api:ip:10.0.0.1"]

    @pytest.mark.asyncio
    async def test_clear_by_type(self, rate_limiter_service, memory_repository):
        await rate_limiter_service.check_rate_limit(RateLimitKey.for_ip("login", "1"), 5, WINDOW_MS)
        await rate_limiter_service.check_rate_limit(RateLimitKey.for_ip("orders", "1"), 5, WINDOW_MS)

        assert await rate_limiter_service.clear_by_type("login") == 1
        assert [e.key for e in await memory_repository.list_entries()] == ["orders:ip:1"]
