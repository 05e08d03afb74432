"""
Application error taxonomy.

Every expected failure in the API is raised as an ``AppError`` carrying a
machine-readable ``ErrorCode``. The HTTP status and severity of each code come
from a single static table so that call sites only choose the code and the
messages. ``ErrorHandler`` (``src.services.error_handler``) is the only place
that turns these errors into responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the ``error`` field."""

    # Authentication & Authorization
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCESS_DENIED = "ACCESS_DENIED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    CSRF_VALIDATION_FAILED = "CSRF_VALIDATION_FAILED"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    INVALID_INPUT_FORMAT = "INVALID_INPUT_FORMAT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Resource Management
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    RESOURCE_LIMIT_EXCEEDED = "RESOURCE_LIMIT_EXCEEDED"

    # Database
    DATABASE_CONNECTION_ERROR = "DATABASE_CONNECTION_ERROR"
    DATABASE_QUERY_ERROR = "DATABASE_QUERY_ERROR"
    DATABASE_TRANSACTION_ERROR = "DATABASE_TRANSACTION_ERROR"

    # External Services
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    EMAIL_SERVICE_ERROR = "EMAIL_SERVICE_ERROR"
    SMS_SERVICE_ERROR = "SMS_SERVICE_ERROR"
    NOTIFICATION_SERVICE_ERROR = "NOTIFICATION_SERVICE_ERROR"
    FILE_UPLOAD_ERROR = "FILE_UPLOAD_ERROR"

    # Business Logic
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    ORDER_PROCESSING_ERROR = "ORDER_PROCESSING_ERROR"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # System
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    MAINTENANCE_MODE = "MAINTENANCE_MODE"

    # Network
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ERROR_MAPPING: dict[ErrorCode, tuple[int, ErrorSeverity]] = {
    # Authentication & Authorization - 401/403/423
    ErrorCode.AUTHENTICATION_REQUIRED: (401, ErrorSeverity.MEDIUM),
    ErrorCode.AUTHENTICATION_FAILED: (401, ErrorSeverity.MEDIUM),
    ErrorCode.INVALID_CREDENTIALS: (401, ErrorSeverity.MEDIUM),
    ErrorCode.ACCESS_DENIED: (403, ErrorSeverity.MEDIUM),
    ErrorCode.TOKEN_EXPIRED: (401, ErrorSeverity.LOW),
    ErrorCode.ACCOUNT_LOCKED: (423, ErrorSeverity.HIGH),
    ErrorCode.CSRF_VALIDATION_FAILED: (403, ErrorSeverity.MEDIUM),
    # Validation - 400/409
    ErrorCode.VALIDATION_ERROR: (400, ErrorSeverity.LOW),
    ErrorCode.MISSING_REQUIRED_FIELDS: (400, ErrorSeverity.LOW),
    ErrorCode.INVALID_INPUT_FORMAT: (400, ErrorSeverity.LOW),
    ErrorCode.DUPLICATE_ENTRY: (409, ErrorSeverity.MEDIUM),
    # Resource Management - 404/409/429
    ErrorCode.RESOURCE_NOT_FOUND: (404, ErrorSeverity.LOW),
    ErrorCode.RESOURCE_CONFLICT: (409, ErrorSeverity.MEDIUM),
    ErrorCode.RESOURCE_LIMIT_EXCEEDED: (429, ErrorSeverity.MEDIUM),
    # Database - 500/503
    ErrorCode.DATABASE_CONNECTION_ERROR: (503, ErrorSeverity.CRITICAL),
    ErrorCode.DATABASE_QUERY_ERROR: (500, ErrorSeverity.HIGH),
    ErrorCode.DATABASE_TRANSACTION_ERROR: (500, ErrorSeverity.HIGH),
    # External Services - 502/500
    ErrorCode.PAYMENT_GATEWAY_ERROR: (502, ErrorSeverity.HIGH),
    ErrorCode.EMAIL_SERVICE_ERROR: (502, ErrorSeverity.MEDIUM),
    ErrorCode.SMS_SERVICE_ERROR: (502, ErrorSeverity.MEDIUM),
    ErrorCode.NOTIFICATION_SERVICE_ERROR: (502, ErrorSeverity.MEDIUM),
    ErrorCode.FILE_UPLOAD_ERROR: (500, ErrorSeverity.MEDIUM),
    # Business Logic - 402/409/410/429
    ErrorCode.INSUFFICIENT_BALANCE: (402, ErrorSeverity.MEDIUM),
    ErrorCode.ORDER_PROCESSING_ERROR: (409, ErrorSeverity.HIGH),
    ErrorCode.SESSION_EXPIRED: (410, ErrorSeverity.LOW),
    ErrorCode.RATE_LIMIT_EXCEEDED: (429, ErrorSeverity.MEDIUM),
    # System - 500/503
    ErrorCode.INTERNAL_SERVER_ERROR: (500, ErrorSeverity.HIGH),
    ErrorCode.SERVICE_UNAVAILABLE: (503, ErrorSeverity.HIGH),
    ErrorCode.MAINTENANCE_MODE: (503, ErrorSeverity.MEDIUM),
    # Network - 502/408
    ErrorCode.NETWORK_ERROR: (502, ErrorSeverity.MEDIUM),
    ErrorCode.TIMEOUT_ERROR: (408, ErrorSeverity.MEDIUM),
}


class AppError(Exception):
    """
    Operational error raised by validation, security and business code.

    ``message`` is internal and only reaches clients in development mode;
    ``user_message`` is safe to expose. ``headers`` are copied onto the error
    response (used for ``Retry-After`` and the rate-limit headers).
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 500,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        user_message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        is_operational: bool = True,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.severity = severity
        self.user_message = user_message
        self.details = details
        self.headers = dict(headers or {})
        self.is_operational = is_operational
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(message)

    def __repr__(self) -> str:
        return f"<AppError(code={self.code.value}, status={self.status_code}, message={self.message!r})>"


def create_error(
    code: ErrorCode,
    message: str,
    user_message: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> AppError:
    """Build an ``AppError`` with the status and severity registered for *code*."""
    status_code, severity = ERROR_MAPPING.get(code, (500, ErrorSeverity.MEDIUM))
    return AppError(
        code=code,
        message=message,
        status_code=status_code,
        severity=severity,
        user_message=user_message,
        details=details,
        headers=headers,
    )


# ── Factories for common scenarios ──────────────────────────────────────────

def validation_error(message: str, details: Optional[dict[str, Any]] = None) -> AppError:
    return create_error(
        ErrorCode.VALIDATION_ERROR, message, "Please check your input and try again", details
    )


def authentication_required(message: str = "Authentication required") -> AppError:
    return create_error(
        ErrorCode.AUTHENTICATION_REQUIRED, message, "Valid authentication token is required."
    )


def authentication_failed(message: str = "Authentication failed") -> AppError:
    return create_error(
        ErrorCode.AUTHENTICATION_FAILED, message, "Invalid authentication credentials."
    )


def token_expired(message: str = "Token has expired") -> AppError:
    return create_error(
        ErrorCode.TOKEN_EXPIRED, message, "Your session has expired. Please log in again."
    )


def access_denied(message: str = "Access denied") -> AppError:
    return create_error(
        ErrorCode.ACCESS_DENIED, message, "You do not have permission to access this resource."
    )


def resource_not_found(resource: str) -> AppError:
    return create_error(
        ErrorCode.RESOURCE_NOT_FOUND,
        f"{resource} not found",
        f"The requested {resource.lower()} could not be found",
    )


def database_error(message: str, query: Optional[str] = None) -> AppError:
    return create_error(
        ErrorCode.DATABASE_QUERY_ERROR,
        message,
        "A database error occurred. Please try again later",
        {"query": query} if query else None,
    )


def payment_error(message: str, details: Optional[dict[str, Any]] = None) -> AppError:
    return create_error(
        ErrorCode.PAYMENT_GATEWAY_ERROR, message, "Payment processing failed. Please try again", details
    )


def insufficient_balance() -> AppError:
    return create_error(
        ErrorCode.INSUFFICIENT_BALANCE,
        "Insufficient balance",
        "You do not have sufficient balance to complete this transaction",
    )


def csrf_validation_failed(message: str = "CSRF token validation failed") -> AppError:
    return create_error(
        ErrorCode.CSRF_VALIDATION_FAILED, message, "Invalid or missing CSRF token."
    )


def rate_limit_exceeded(
    message: str = "Rate limit exceeded",
    headers: Optional[Mapping[str, str]] = None,
    details: Optional[dict[str, Any]] = None,
) -> AppError:
    return create_error(
        ErrorCode.RATE_LIMIT_EXCEEDED,
        message,
        "Too many requests. Please try again later.",
        details,
        headers,
    )


def timeout_error(message: str = "Request timeout") -> AppError:
    return create_error(
        ErrorCode.TIMEOUT_ERROR, message, "Request took too long to process"
    )
