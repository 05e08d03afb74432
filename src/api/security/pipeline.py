"""
Request security pipeline.

Every protected route runs the same ordered stages before its handler:

    RATE_LIMIT -> AUTHENTICATE -> AUTHORIZE -> CSRF -> SANITIZE_INPUT

A stage either passes, enriching the ``SecurityContext``, or raises an
``AppError`` which stops the pipeline; the registered exception handlers turn
that error into the standard envelope. When rate limiting is keyed on the
authenticated user the RATE_LIMIT stage runs after AUTHORIZE instead.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Optional, TypeVar

from fastapi import Request, Response

from src.core.config import Config
from src.core.errors import (
    ErrorCode,
    create_error,
    csrf_validation_failed,
    rate_limit_exceeded,
    timeout_error,
)
from src.core.logging import add_context, get_logger
from src.dtos.principal_dto import PrincipalDTO, Role
from src.dtos.rate_limit_dto import (
    FailurePolicy,
    IdentityKind,
    ProgressiveRateLimitResult,
    RateLimitKey,
    RateLimitLevel,
    RateLimitResult,
)
from src.services.auth_service import AuthService
from src.services.csrf_service import CSRFService
from src.services.input_sanitizer import InputSanitizer, JSONValue
from src.services.rate_limiter_service import RateLimiterService
from src.services.shared.request_helpers import get_client_ip, get_request_id

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_WINDOW_MS = 15 * 60 * 1000
DEFAULT_MAX_REQUEST_SIZE = 10 * 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 30.0

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}
HSTS_HEADER = ("Strict-Transport-Security", "max-age=31536000; includeSubDomains")

PROGRESSIVE_DENIAL_MESSAGES = (
    "Too many attempts. Please wait 15 minutes before trying again.",
    "Multiple attempts detected. Please wait 30 minutes before trying again.",
    "Excessive attempts detected. Please wait 1 hour before trying again.",
    "Too many attempts. Please wait 4 hours before trying again.",
)


class SecurityStage(str, Enum):
    RATE_LIMIT = "rate_limit"
    AUTHENTICATE = "authenticate"
    AUTHORIZE = "authorize"
    CSRF = "csrf"
    SANITIZE_INPUT = "sanitize_input"


@dataclass(frozen=True)
class RateLimitOptions:
    """
    Per-route rate limit.

    ``purpose`` defaults to the request path, so each route has its own
    counters unless several routes share a purpose on purpose.
    """
    requests: int
    window_ms: int = DEFAULT_WINDOW_MS
    identity: IdentityKind = IdentityKind.IP
    failure_policy: FailurePolicy = FailurePolicy.OPEN
    purpose: Optional[str] = None


@dataclass(frozen=True)
class SecurityOptions:
    require_auth: bool = True
    allowed_roles: tuple[Role, ...] = (Role.ADMINISTRATOR, Role.MANAGER)
    rate_limit: Optional[RateLimitOptions] = RateLimitOptions(requests=100)
    progressive_levels: Optional[tuple[RateLimitLevel, ...]] = None
    require_csrf: bool = True
    validate_input: bool = True
    max_request_size: int = DEFAULT_MAX_REQUEST_SIZE
    allowed_content_types: tuple[str, ...] = ("application/json",)

    def __post_init__(self):
        if self.rate_limit and self.rate_limit.identity == IdentityKind.USER and not self.require_auth:
            raise ValueError("per-user rate limiting requires authentication")
        if self.progressive_levels is not None and not self.rate_limit:
            raise ValueError("progressive levels need rate limit options for key and failure policy")

    def stages(self) -> tuple[SecurityStage, ...]:
        """Ordered stages this route runs."""
        stages: list[SecurityStage] = []
        per_user_limit = self.rate_limit is not None and self.rate_limit.identity == IdentityKind.USER

        if self.rate_limit and not per_user_limit:
            stages.append(SecurityStage.RATE_LIMIT)
        if self.require_auth:
            stages.extend((SecurityStage.AUTHENTICATE, SecurityStage.AUTHORIZE))
        if per_user_limit:
            stages.append(SecurityStage.RATE_LIMIT)
        if self.require_csrf:
            stages.append(SecurityStage.CSRF)
        if self.validate_input:
            stages.append(SecurityStage.SANITIZE_INPUT)

        return tuple(stages)


@dataclass
class SecurityContext:
    """What a protected handler receives."""
    client_ip: Optional[str]
    request_id: str
    principal: Optional[PrincipalDTO] = None
    body: Optional[JSONValue] = None
    rate_limit: Optional[RateLimitResult] = None
    csrf_token: Optional[str] = None
    completed_stages: list[SecurityStage] = field(default_factory=list)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at.timestamp())),
    }
    if isinstance(result, ProgressiveRateLimitResult):
        headers["X-RateLimit-Level"] = str(result.level)
    if not result.allowed and result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> T:
    """Await *awaitable*, raising TIMEOUT_ERROR if it takes too long."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("operation_timed_out", timeout_seconds=timeout_seconds)
        raise timeout_error(f"Operation exceeded {timeout_seconds}s")


class RequestSecurityPipeline:
    """Runs the security stages for a route and decorates its response."""

    def __init__(
        self,
        config: Config,
        rate_limiter_service: RateLimiterService,
        auth_service: AuthService,
        csrf_service: CSRFService,
        input_sanitizer: InputSanitizer,
    ):
        self.config = config
        self.rate_limiter_service = rate_limiter_service
        self.auth_service = auth_service
        self.csrf_service = csrf_service
        self.input_sanitizer = input_sanitizer

        self._handlers = {
            SecurityStage.RATE_LIMIT: self._rate_limit,
            SecurityStage.AUTHENTICATE: self._authenticate,
            SecurityStage.AUTHORIZE: self._authorize,
            SecurityStage.CSRF: self._csrf,
            SecurityStage.SANITIZE_INPUT: self._sanitize_input,
        }

    async def process(
        self,
        request: Request,
        response: Response,
        options: SecurityOptions,
    ) -> SecurityContext:
        """
        Run every stage of *options* against *request*.

        Headers and cookies for the eventual response (rate limit, security
        headers, re-issued CSRF token) are set on *response*.

        Raises:
            AppError: From the first failing stage
        """
        context = SecurityContext(
            client_ip=get_client_ip(request),
            request_id=get_request_id(request),
        )

        for stage in options.stages():
            await self._handlers[stage](request, response, options, context)
            context.completed_stages.append(stage)

        self.apply_security_headers(response)

        if options.require_csrf and self.csrf_service.should_reissue(request.method):
            context.csrf_token = self.csrf_service.set_token_cookie(response)

        return context

    def apply_security_headers(self, response: Response) -> None:
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        if self.config.is_production:
            response.headers[HSTS_HEADER[0]] = HSTS_HEADER[1]

    # ── Stages ─────────────────────────────────────────────────────────────

    async def _rate_limit(
        self,
        request: Request,
        response: Response,
        options: SecurityOptions,
        context: SecurityContext,
    ) -> None:
        rate_limit = options.rate_limit
        purpose = rate_limit.purpose or request.url.path

        if rate_limit.identity == IdentityKind.USER:
            key = RateLimitKey.for_user(purpose, context.principal.id)
        else:
            key = RateLimitKey.for_ip(purpose, context.client_ip)

        if options.progressive_levels:
            result = await self.rate_limiter_service.check_progressive_rate_limit(
                key, options.progressive_levels, rate_limit.failure_policy
            )
        else:
            result = await self.rate_limiter_service.check_rate_limit(
                key, rate_limit.requests, rate_limit.window_ms, rate_limit.failure_policy
            )

        context.rate_limit = result
        headers = rate_limit_headers(result)

        if result.allowed:
            response.headers.update(headers)
            return

        if result.degraded:
            raise create_error(
                ErrorCode.SERVICE_UNAVAILABLE,
                "Rate limit store unavailable",
                "Service temporarily unavailable. Please try again later.",
                headers={"Retry-After": headers["Retry-After"]},
            )

        details: dict[str, Any] = {"retryAfter": result.retry_after_seconds}
        message = "Too many requests. Please try again later."
        if isinstance(result, ProgressiveRateLimitResult):
            details["level"] = result.level
            message = PROGRESSIVE_DENIAL_MESSAGES[min(result.level, len(PROGRESSIVE_DENIAL_MESSAGES) - 1)]

        error = rate_limit_exceeded(f"Rate limit exceeded for {key}", headers=headers, details=details)
        error.user_message = message
        raise error

    async def _authenticate(
        self,
        request: Request,
        response: Response,
        options: SecurityOptions,
        context: SecurityContext,
    ) -> None:
        principal = await self.auth_service.authenticate_request(request)
        context.principal = principal
        request.state.principal = principal
        add_context(user_id=principal.id)

    async def _authorize(
        self,
        request: Request,
        response: Response,
        options: SecurityOptions,
        context: SecurityContext,
    ) -> None:
        self.auth_service.authorize(context.principal, options.allowed_roles)

    async def _csrf(
        self,
        request: Request,
        response: Response,
        options: SecurityOptions,
        context: SecurityContext,
    ) -> None:
        if not self.csrf_service.requires_validation(request.method):
            return
        if not self.csrf_service.validate_token(request):
            raise csrf_validation_failed()

    async def _sanitize_input(
        self,
        request: Request,
        response: Response,
        options: SecurityOptions,
        context: SecurityContext,
    ) -> None:
        if request.method.upper() not in BODY_METHODS:
            return

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > options.max_request_size:
            raise create_error(
                ErrorCode.VALIDATION_ERROR,
                f"Request too large: {content_length} bytes",
                "Request body is too large",
            )

        raw = await request.body()
        if not raw:
            return

        if len(raw) > options.max_request_size:
            raise create_error(
                ErrorCode.VALIDATION_ERROR,
                f"Request too large: {len(raw)} bytes",
                "Request body is too large",
            )

        content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type not in options.allowed_content_types:
            raise create_error(
                ErrorCode.INVALID_INPUT_FORMAT,
                f"Unsupported content type: {content_type or 'none'}",
                "Unsupported request content type.",
            )

        if content_type != "application/json":
            return

        try:
            body = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
            raise create_error(
                ErrorCode.INVALID_INPUT_FORMAT,
                f"Malformed JSON body: {e}",
                "Invalid request body.",
            )

        context.body = self.input_sanitizer.sanitize(body)
