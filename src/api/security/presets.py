"""
Named security configurations for the common kinds of route.
"""

from src.api.security.pipeline import RateLimitOptions, SecurityOptions
from src.dtos.principal_dto import Role
from src.dtos.rate_limit_dto import FailurePolicy
from src.services.rate_limiter_service import DEFAULT_PROGRESSIVE_LEVELS, HOUR_MS, MINUTE_MS

STAFF_ROLES = (Role.ADMINISTRATOR, Role.MANAGER)


class SecurityPresets:
    # Unauthenticated reads
    PUBLIC = SecurityOptions(
        require_auth=False,
        allowed_roles=(),
        rate_limit=RateLimitOptions(requests=30, window_ms=15 * MINUTE_MS),
        require_csrf=False,
    )

    # Login / registration
    AUTH = SecurityOptions(
        require_auth=False,
        allowed_roles=(),
        rate_limit=RateLimitOptions(
            requests=5,
            window_ms=15 * MINUTE_MS,
            failure_policy=FailurePolicy.CLOSED,
        ),
        require_csrf=True,
    )

    # Forgot / reset password: tightens on repeated violations
    PASSWORD_RECOVERY = SecurityOptions(
        require_auth=False,
        allowed_roles=(),
        rate_limit=RateLimitOptions(
            requests=DEFAULT_PROGRESSIVE_LEVELS[0].max_requests,
            window_ms=DEFAULT_PROGRESSIVE_LEVELS[0].window_ms,
            failure_policy=FailurePolicy.CLOSED,
            purpose="forgot-password",
        ),
        progressive_levels=DEFAULT_PROGRESSIVE_LEVELS,
        require_csrf=True,
    )

    ADMIN = SecurityOptions(
        allowed_roles=(Role.ADMINISTRATOR,),
        rate_limit=RateLimitOptions(requests=100, window_ms=15 * MINUTE_MS),
    )

    MANAGER = SecurityOptions(
        allowed_roles=STAFF_ROLES,
        rate_limit=RateLimitOptions(requests=100, window_ms=15 * MINUTE_MS),
    )

    CUSTOMER = SecurityOptions(
        allowed_roles=(*STAFF_ROLES, Role.CUSTOMER),
        rate_limit=RateLimitOptions(requests=50, window_ms=15 * MINUTE_MS),
    )

    ASTROLOGER = SecurityOptions(
        allowed_roles=(*STAFF_ROLES, Role.ASTROLOGER),
        rate_limit=RateLimitOptions(requests=50, window_ms=15 * MINUTE_MS),
    )

    # Multipart bodies are not sanitized
    UPLOAD = SecurityOptions(
        allowed_roles=(),
        rate_limit=RateLimitOptions(requests=20, window_ms=HOUR_MS),
        validate_input=False,
    )

    # Signed callbacks from payment providers
    WEBHOOK = SecurityOptions(
        require_auth=False,
        allowed_roles=(),
        rate_limit=RateLimitOptions(requests=100, window_ms=MINUTE_MS),
        require_csrf=False,
    )
