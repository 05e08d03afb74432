"""
Structured logging configuration using structlog.

Logs are rendered as JSON in production and with the console renderer in
debug mode. Request-scoped values (request id, client ip, principal id) are
carried through contextvars so every entry emitted while a request is being
processed can be correlated.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import FilteringBoundLogger

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "redis")


def setup_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, use JSON formatting (recommended for production)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.warning("csrf_token_mismatch", path="/api/v1/admin/validate")
    """
    return structlog.get_logger(name or __name__)


def bind_context(**kwargs: Any) -> None:
    """
    Replace the request-scoped logging context.

    Example:
        >>> bind_context(request_id="01J9Z...", client_ip="10.0.0.7")
        >>> logger.info("rate_limit_checked")  # includes request_id and client_ip
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)


def add_context(**kwargs: Any) -> None:
    """Add values to the current context without clearing it."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
