"""
Error log model for high and critical severity failures.
"""

from typing import Any, Optional

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, ULIDMixin, TimestampMixin


class ErrorLog(ULIDMixin, TimestampMixin, Base):
    """
    Persisted record of a high/critical error, kept for tracking and analytics.
    """
    __tablename__ = "error_logs"

    request_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)

    message: Mapped[str] = mapped_column(Text, nullable=False)
    user_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    stack_trace: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Request metadata
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    endpoint: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    method: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 support

    resolved: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self):
        return f"<ErrorLog(id={self.id}, code={self.code}, severity={self.severity})>"
