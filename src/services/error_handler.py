"""
Central error formatting funnel.

Every failure that leaves the API, whether an ``AppError`` raised by a
security stage or handler or an unexpected exception, goes through
``ErrorHandler.handle_error`` exactly once. It produces the single error
envelope::

    {"success": false, "error": "<CODE>", "message": "<safe text>",
     "details": ..., "timestamp": ..., "requestId": ...}   # last three: development only

logs the error at a level derived from its severity, escalates critical
errors and optionally persists high/critical errors.
"""

from __future__ import annotations

import functools
import traceback
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from src.core.config import Config
from src.core.errors import AppError, ErrorCode, ErrorSeverity
from src.core.logging import get_logger
from src.dtos.error_dto import ErrorDetailsDTO
from src.repositories.error_log_repository import ErrorLogRepository
from src.services.shared.request_helpers import get_client_ip, get_request_id

logger = get_logger(__name__)

GENERIC_USER_MESSAGE = "An unexpected error occurred"
REDACTED = "[REDACTED]"
SENSITIVE_KEY_FRAGMENTS = ("password", "token", "secret", "authorization", "cookie", "api_key", "otp")


class CriticalErrorNotifier(Protocol):
    """Escalation hook for critical errors (paging integration point)."""

    async def notify(self, error: ErrorDetailsDTO) -> None:
        ...


class LoggingCriticalErrorNotifier:
    """Default escalation: a prominent critical-level log entry."""

    async def notify(self, error: ErrorDetailsDTO) -> None:
        logger.critical(
            "critical_error_escalated",
            code=error.code.value,
            request_id=error.request_id,
            endpoint=error.endpoint,
            method=error.method,
            error=error.message,
        )


def redact_sensitive(value: Any) -> Any:
    """Replace values stored under secret-looking keys, recursively."""
    if isinstance(value, dict):
        return {
            key: REDACTED
            if any(fragment in str(key).lower() for fragment in SENSITIVE_KEY_FRAGMENTS)
            else redact_sensitive(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_sensitive(item) for item in value]
    return value


class ErrorHandler:
    """Formats, logs, escalates and persists errors."""

    def __init__(
        self,
        config: Config,
        error_log_repository: Optional[ErrorLogRepository] = None,
        notifier: Optional[CriticalErrorNotifier] = None,
    ):
        self.config = config
        self.error_log_repository = error_log_repository
        self.notifier = notifier or LoggingCriticalErrorNotifier()

    async def handle_error(
        self,
        error: BaseException,
        request: Optional[Request] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> JSONResponse:
        """
        Normalize *error* into the error envelope.

        Args:
            error: Any exception; non-``AppError`` exceptions are treated as
                INTERNAL_SERVER_ERROR with high severity
            request: Current request, for request id and client metadata
            context: Optional ``user_id``/``endpoint``/``method`` overrides

        Returns:
            JSONResponse with ``X-Request-ID`` and ``X-Error-Code`` headers
        """
        details = self._build_details(error, request, context or {})

        self._log(details, error)

        if details.severity == ErrorSeverity.CRITICAL:
            try:
                await self.notifier.notify(details)
            except Exception as exc:
                logger.error("critical_error_notification_failed", error=str(exc))

        if self.error_log_repository is not None and details.severity in (
            ErrorSeverity.HIGH,
            ErrorSeverity.CRITICAL,
        ):
            try:
                await self.error_log_repository.create(details)
            except Exception as exc:
                logger.error(
                    "error_log_persist_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

        headers = dict(error.headers) if isinstance(error, AppError) else {}
        return self.create_error_response(details, headers)

    def create_error_response(
        self,
        details: ErrorDetailsDTO,
        extra_headers: Optional[dict[str, str]] = None,
    ) -> JSONResponse:
        content: dict[str, Any] = {
            "success": False,
            "error": details.code.value,
            "message": self._client_message(details),
        }

        if self.config.is_development:
            content["details"] = redact_sensitive(details.details) if details.details else None
            content["timestamp"] = details.timestamp.isoformat()
            content["requestId"] = details.request_id

        headers = {
            **(extra_headers or {}),
            "X-Request-ID": details.request_id,
            "X-Error-Code": details.code.value,
        }

        return JSONResponse(
            status_code=details.status_code,
            content=jsonable_encoder(content),
            headers=headers,
        )

    def with_error_handler(
        self,
        func: Callable[..., Awaitable[Any]],
    ) -> Callable[..., Awaitable[Any]]:
        """
        Wrap an async callable taking the request first, so that anything it
        raises is returned as an error response instead.
        """

        @functools.wraps(func)
        async def wrapper(request: Request, *args: Any, **kwargs: Any) -> Any:
            try:
                return await func(request, *args, **kwargs)
            except Exception as exc:
                return await self.handle_error(
                    exc,
                    request,
                    {"endpoint": str(request.url.path), "method": request.method},
                )

        return wrapper

    # ── Internals ──────────────────────────────────────────────────────────

    def _client_message(self, details: ErrorDetailsDTO) -> str:
        if details.user_message:
            return details.user_message
        if self.config.is_development:
            return details.message
        return GENERIC_USER_MESSAGE

    def _build_details(
        self,
        error: BaseException,
        request: Optional[Request],
        context: dict[str, Any],
    ) -> ErrorDetailsDTO:
        if isinstance(error, AppError):
            code = error.code
            severity = error.severity
            status_code = error.status_code
            user_message = error.user_message
            payload = error.details
            stack_trace = None
        else:
            code = ErrorCode.INTERNAL_SERVER_ERROR
            severity = ErrorSeverity.HIGH
            status_code = 500
            user_message = None
            payload = None
            stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        principal = getattr(request.state, "principal", None) if request is not None else None

        return ErrorDetailsDTO(
            code=code,
            message=str(error) or type(error).__name__,
            severity=severity,
            status_code=status_code,
            timestamp=datetime.now(timezone.utc),
            request_id=get_request_id(request),
            user_message=user_message,
            details=payload,
            user_id=context.get("user_id") or (principal.id if principal else None),
            endpoint=context.get("endpoint") or (str(request.url.path) if request is not None else None),
            method=context.get("method") or (request.method if request is not None else None),
            user_agent=request.headers.get("user-agent") if request is not None else None,
            ip=get_client_ip(request),
            stack_trace=stack_trace,
        )

    def _log(self, details: ErrorDetailsDTO, error: BaseException) -> None:
        fields = {
            "code": details.code.value,
            "severity": details.severity.value,
            "status_code": details.status_code,
            "request_id": details.request_id,
            "endpoint": details.endpoint,
            "method": details.method,
            "user_id": details.user_id,
            "ip": details.ip,
            "error": details.message,
        }

        if details.severity == ErrorSeverity.LOW:
            logger.info("request_failed", **fields)
        elif details.severity == ErrorSeverity.MEDIUM:
            logger.warning("request_failed", **fields)
        elif isinstance(error, AppError):
            logger.error("request_failed", **fields)
        else:
            logger.error(
                "unhandled_exception",
                error_type=type(error).__name__,
                exc_info=error,
                **fields,
            )
