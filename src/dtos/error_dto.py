"""
Error record Data Transfer Objects.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from src.core.errors import ErrorCode, ErrorSeverity


@dataclass
class ErrorDetailsDTO:
    """Normalized description of a failed request, built once per error."""
    code: ErrorCode
    message: str
    severity: ErrorSeverity
    status_code: int
    timestamp: datetime
    request_id: str
    user_message: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    user_id: Optional[str] = None
    endpoint: Optional[str] = None
    method: Optional[str] = None
    user_agent: Optional[str] = None
    ip: Optional[str] = None
    stack_trace: Optional[str] = None
