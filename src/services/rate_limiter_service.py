"""
Rate limiter service for enforcing request rate limits.
"""

from datetime import timedelta
from typing import Optional, Sequence

from src.core.logging import get_logger
from src.dtos.rate_limit_dto import (
    FailurePolicy,
    ProgressiveRateLimitResult,
    RateLimitEntry,
    RateLimitKey,
    RateLimitLevel,
    RateLimitOverview,
    RateLimitResult,
    RateLimitStoreUnavailable,
)
from src.repositories.rate_limiter_repository import RateLimiterRepository

logger = get_logger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

VIOLATION_WINDOW_MS = 24 * HOUR_MS
DEGRADED_RETRY_AFTER_MS = MINUTE_MS
TOP_VIOLATOR_MIN_COUNT = 10
TOP_LIST_SIZE = 10

DEFAULT_PROGRESSIVE_LEVELS: tuple[RateLimitLevel, ...] = (
    RateLimitLevel(window_ms=15 * MINUTE_MS, max_requests=3),
    RateLimitLevel(window_ms=30 * MINUTE_MS, max_requests=2),
    RateLimitLevel(window_ms=HOUR_MS, max_requests=1),
    RateLimitLevel(window_ms=4 * HOUR_MS, max_requests=1),
)

OVERVIEW_TYPE_ALL = "all"
OVERVIEW_TYPE_VIOLATIONS = "violations"


def is_violation_key(key: str) -> bool:
    return ":violations:" in key


def matches_type(key: str, type_filter: str) -> bool:
    """Admin filter: ``all``, ``violations`` or a purpose prefix."""
    if type_filter == OVERVIEW_TYPE_ALL:
        return True
    if type_filter == OVERVIEW_TYPE_VIOLATIONS:
        return is_violation_key(key)
    return key.startswith(f"{type_filter}:")


class RateLimiterService:
    """Service for managing rate limiting logic."""

    def __init__(
        self,
        rate_limiter_repository: RateLimiterRepository,
        enabled: bool = True,
        violation_window_ms: int = VIOLATION_WINDOW_MS,
    ):
        """
        Initialize rate limiter service.

        Args:
            rate_limiter_repository: Counter store
            enabled: When False every check is permissive
            violation_window_ms: Quiet period after which the progressive
                level drops back to zero
        """
        self.repository = rate_limiter_repository
        self.enabled = enabled
        self.violation_window_ms = violation_window_ms

    async def check_rate_limit(
        self,
        key: RateLimitKey,
        max_requests: int,
        window_ms: int,
        failure_policy: FailurePolicy = FailurePolicy.OPEN,
    ) -> RateLimitResult:
        """
        Count one request against *key* and decide whether it is allowed.

        The request is counted even when denied, so hammering a limited key
        keeps it limited until the window ends.

        Args:
            key: Typed counter key
            max_requests: Requests allowed per window
            window_ms: Window length in milliseconds
            failure_policy: What to do if the store is unavailable

        Returns:
            RateLimitResult; ``degraded`` is set when the failure policy decided
        """
        if not self.enabled:
            logger.debug("rate_limiting_disabled", key=str(key))
            return self._permissive(max_requests, window_ms)

        try:
            entry = await self.repository.hit(str(key), window_ms)
        except RateLimitStoreUnavailable as e:
            return self._degraded(key, max_requests, window_ms, failure_policy, e)

        result = self._evaluate(entry, max_requests)

        if not result.allowed:
            logger.warning(
                "rate_limit_exceeded",
                key=str(key),
                limit=max_requests,
                count=entry.count,
                retry_after_ms=result.retry_after_ms,
            )

        return result

    async def check_progressive_rate_limit(
        self,
        key: RateLimitKey,
        levels: Sequence[RateLimitLevel] = DEFAULT_PROGRESSIVE_LEVELS,
        failure_policy: FailurePolicy = FailurePolicy.CLOSED,
    ) -> ProgressiveRateLimitResult:
        """
        Rate limit that tightens with repeated violations.

        The violation count for *key* selects the level
        (``min(violations, len(levels) - 1)``); every denied attempt records
        another violation. Violations are forgotten after a quiet period with
        none.
        """
        if not levels:
            raise ValueError("progressive rate limit requires at least one level")

        if not self.enabled:
            base = self._permissive(levels[0].max_requests, levels[0].window_ms)
            return ProgressiveRateLimitResult(**vars(base), level=0)

        violations_key = str(key.violations)

        try:
            violation_entry = await self.repository.get(violations_key)
            violations = violation_entry.count if violation_entry else 0
            level = min(violations, len(levels) - 1)
            current = levels[level]

            entry = await self.repository.hit(str(key), current.window_ms)
            result = self._evaluate(entry, current.max_requests)

            if not result.allowed:
                await self.repository.hit(violations_key, self.violation_window_ms, sliding=True)
        except RateLimitStoreUnavailable as e:
            base = self._degraded(key, levels[0].max_requests, levels[0].window_ms, failure_policy, e)
            return ProgressiveRateLimitResult(**vars(base), level=0)

        if not result.allowed:
            logger.warning(
                "progressive_rate_limit_exceeded",
                key=str(key),
                level=level,
                limit=current.max_requests,
                violations=violations + 1,
                retry_after_ms=result.retry_after_ms,
            )

        return ProgressiveRateLimitResult(**vars(result), level=level)

    async def get_status(self, key: str) -> Optional[RateLimitEntry]:
        """
        Get current counter state without incrementing.

        Args:
            key: Rendered rate limit key

        Returns:
            Live entry or None
        """
        return await self.repository.get(key)

    async def reset_limits(self, key: str) -> int:
        """
        Reset a counter and its violation history (admin function).

        Args:
            key: Rendered rate limit key

        Returns:
            Number of records removed
        """
        keys = [key]
        purpose, sep, rest = key.partition(":")
        if sep and not is_violation_key(key):
            keys.append(f"{purpose}:violations:{rest}")

        deleted = await self.repository.reset(*keys)
        logger.info("rate_limits_reset_by_admin", key=key, deleted=deleted)
        return deleted

    async def clear_by_type(self, type_filter: str) -> int:
        """Remove every live counter matching an admin type filter."""
        entries = await self.repository.list_entries()
        keys = [e.key for e in entries if matches_type(e.key, type_filter)]
        deleted = await self.repository.reset(*keys)
        logger.info("rate_limits_cleared_by_type", type=type_filter, deleted=deleted)
        return deleted

    async def sweep(self) -> int:
        return await self.repository.sweep()

    async def get_overview(
        self,
        type_filter: str = OVERVIEW_TYPE_ALL,
        page: int = 1,
        limit: int = 50,
    ) -> RateLimitOverview:
        """
        Monitoring snapshot for the admin API.

        Entries are filtered by *type_filter* and paginated, most recently
        active first. Statistics cover every live counter regardless of the
        filter.
        """
        entries = await self.repository.list_entries()

        filtered = sorted(
            (e for e in entries if matches_type(e.key, type_filter)),
            key=lambda e: (e.last_request_at, e.count),
            reverse=True,
        )
        offset = (page - 1) * limit

        counts = [e.count for e in entries]
        top_violators = sorted(
            (e for e in entries if not is_violation_key(e.key) and e.count >= TOP_VIOLATOR_MIN_COUNT),
            key=lambda e: e.count,
            reverse=True,
        )[:TOP_LIST_SIZE]
        violation_patterns = sorted(
            (e for e in entries if is_violation_key(e.key)),
            key=lambda e: e.count,
            reverse=True,
        )[:TOP_LIST_SIZE]

        return RateLimitOverview(
            entries=filtered[offset:offset + limit],
            total_records=len(filtered),
            page=page,
            limit=limit,
            total_active_keys=len(entries),
            total_requests=sum(counts),
            avg_requests_per_key=(sum(counts) / len(counts)) if counts else 0.0,
            max_requests_per_key=max(counts, default=0),
            top_violators=top_violators,
            violation_patterns=violation_patterns,
        )

    async def is_healthy(self) -> bool:
        try:
            return await self.repository.ping()
        except RateLimitStoreUnavailable:
            return False

    def _evaluate(self, entry: RateLimitEntry, max_requests: int) -> RateLimitResult:
        allowed = entry.count <= max_requests
        retry_after_ms = None
        if not allowed:
            remaining_ms = (entry.window_reset_at - self.repository.clock()) / timedelta(milliseconds=1)
            retry_after_ms = max(0, int(remaining_ms))

        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, max_requests - entry.count),
            limit=max_requests,
            reset_at=entry.window_reset_at,
            total=entry.count,
            retry_after_ms=retry_after_ms,
        )

    def _permissive(self, max_requests: int, window_ms: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            remaining=max_requests,
            limit=max_requests,
            reset_at=self.repository.clock() + timedelta(milliseconds=window_ms),
            total=0,
        )

    def _degraded(
        self,
        key: RateLimitKey,
        max_requests: int,
        window_ms: int,
        failure_policy: FailurePolicy,
        error: RateLimitStoreUnavailable,
    ) -> RateLimitResult:
        logger.error(
            "rate_limit_store_unavailable",
            key=str(key),
            failure_policy=failure_policy.value,
            error=str(error.cause or error),
        )

        if failure_policy == FailurePolicy.OPEN:
            result = self._permissive(max_requests, window_ms)
            result.degraded = True
            return result

        return RateLimitResult(
            allowed=False,
            remaining=0,
            limit=max_requests,
            reset_at=self.repository.clock() + timedelta(milliseconds=DEGRADED_RETRY_AFTER_MS),
            total=0,
            retry_after_ms=DEGRADED_RETRY_AFTER_MS,
            degraded=True,
        )
