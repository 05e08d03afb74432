"""
Rate limiting domain models and exceptions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class IdentityKind(str, Enum):
    """What a rate-limit counter is keyed on."""
    IP = "ip"
    USER = "user"
    EMAIL = "email"


class FailurePolicy(str, Enum):
    """Behaviour when the counter store is unreachable."""
    OPEN = "open"      # allow, for low-risk reads
    CLOSED = "closed"  # deny, for authentication-adjacent endpoints


@dataclass(frozen=True)
class RateLimitKey:
    """
    Typed counter key.

    Rendering includes the purpose and the identity kind, so a login counter
    for an IP can never collide with a forgot-password counter for an email.
    """
    purpose: str
    identity_kind: IdentityKind
    identity: str

    def __str__(self) -> str:
        return f"{self.purpose}:{self.identity_kind.value}:{self.identity}"

    @property
    def violations(self) -> "RateLimitKey":
        """Companion key counting repeated violations, for progressive limits."""
        return RateLimitKey(f"{self.purpose}:violations", self.identity_kind, self.identity)

    @classmethod
    def for_ip(cls, purpose: str, ip: Optional[str]) -> "RateLimitKey":
        return cls(purpose, IdentityKind.IP, (ip or "unknown").strip())

    @classmethod
    def for_user(cls, purpose: str, user_id: str) -> "RateLimitKey":
        return cls(purpose, IdentityKind.USER, user_id)

    @classmethod
    def for_email(cls, purpose: str, email: str) -> "RateLimitKey":
        return cls(purpose, IdentityKind.EMAIL, email.strip().lower())


@dataclass
class RateLimitEntry:
    """Counter state for one key within its current fixed window."""
    key: str
    count: int
    window_started_at: datetime
    window_reset_at: datetime
    last_request_at: datetime
    violation_level: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now >= self.window_reset_at


@dataclass(frozen=True)
class RateLimitLevel:
    """One step of a progressive schedule: ``max_requests`` per ``window_ms``."""
    window_ms: int
    max_requests: int


@dataclass
class RateLimitResult:
    """Outcome of a single rate-limit check."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime
    total: int
    retry_after_ms: Optional[int] = None
    degraded: bool = False  # store unavailable, failure policy applied

    @property
    def retry_after_seconds(self) -> Optional[int]:
        if self.retry_after_ms is None:
            return None
        return max(1, -(-self.retry_after_ms // 1000))


@dataclass
class ProgressiveRateLimitResult(RateLimitResult):
    level: int = 0


@dataclass
class RateLimitOverview:
    """Monitoring snapshot of active counters."""
    entries: list[RateLimitEntry]
    total_records: int
    page: int
    limit: int
    total_active_keys: int
    total_requests: int
    avg_requests_per_key: float
    max_requests_per_key: int
    top_violators: list[RateLimitEntry] = field(default_factory=list)
    violation_patterns: list[RateLimitEntry] = field(default_factory=list)


class RateLimitStoreUnavailable(Exception):
    """Raised by a store when its backend cannot be reached."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        super().__init__(self.message)
