"""
Error log repository for database operations.
"""

from __future__ import annotations

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.logging import get_logger
from src.dtos.error_dto import ErrorDetailsDTO
from src.models.error_log import ErrorLog

logger = get_logger(__name__)


class ErrorLogRepository:
    """
    Repository for persisting error records.

    Errors are formatted after the request's own unit of work may already
    have been rolled back, so every write opens its own session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, error: ErrorDetailsDTO) -> ErrorLog:
        """
        Insert an error record.

        Args:
            error: Normalized error details

        Returns:
            Created ErrorLog object
        """
        record = ErrorLog(
            request_id=error.request_id,
            code=error.code.value,
            severity=error.severity.value,
            status_code=error.status_code,
            message=error.message,
            user_message=error.user_message,
            details=jsonable_encoder(error.details) if error.details else None,
            stack_trace=error.stack_trace,
            user_id=error.user_id,
            endpoint=error.endpoint,
            method=error.method,
            user_agent=error.user_agent,
            ip_address=error.ip,
            resolved=False,
        )

        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)

        logger.debug("error_log_persisted", error_log_id=record.id, code=record.code)
        return record
