"""
Pydantic schemas for the security, rate-limit monitoring and validation endpoints.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class CsrfTokenResponse(BaseModel):
    """Response schema for a freshly issued CSRF token."""

    success: bool = True
    csrf_token: str = Field(..., description="Echo this value in the x-csrf-token header")


class PrincipalResponse(BaseModel):
    """Authenticated principal as seen by the API."""

    success: bool = True
    id: str
    email: str
    role: str
    name: Optional[str] = None
    token_issued_at: Optional[datetime] = None
    token_expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RateLimitEntryResponse(BaseModel):
    key: str
    count: int
    window_start: datetime
    window_reset_at: datetime
    last_request: datetime
    type: str = Field(..., description="'violation' or 'rate_limit'")
    identifier: str = Field(..., description="Purpose the counter belongs to")
    target: str = Field(..., description="'ip', 'user' or 'email'")


class RateLimitStatisticsResponse(BaseModel):
    total_active_keys: int
    total_requests: int
    avg_requests_per_key: float
    max_requests_per_key: int


class TopViolatorResponse(BaseModel):
    key: str
    count: int
    last_request: datetime


class ViolationPatternResponse(BaseModel):
    key: str
    violation_count: int
    last_violation: datetime


class PaginationResponse(BaseModel):
    current_page: int
    per_page: int
    total_records: int
    total_pages: int
    has_next: bool
    has_prev: bool


class RateLimitOverviewResponse(BaseModel):
    """Response schema for the rate-limit monitoring endpoint."""

    success: bool = True
    rate_limits: list[RateLimitEntryResponse]
    statistics: RateLimitStatisticsResponse
    top_violators: list[TopViolatorResponse]
    violation_patterns: list[ViolationPatternResponse]
    pagination: PaginationResponse


class RateLimitStatusResponse(BaseModel):
    success: bool = True
    key: str
    active: bool
    count: int = 0
    window_reset_at: Optional[datetime] = None
    last_request: Optional[datetime] = None


class RateLimitClearResponse(BaseModel):
    success: bool = True
    message: str
    deleted: int


class ValidationRuleRequest(BaseModel):
    """One field to check, with its ordered rule names (e.g. ``min:8``)."""

    field: str = Field(..., min_length=1)
    value: Any = None
    rules: list[str] = Field(default_factory=list)
    custom_message: Optional[str] = None


class ValidateRequest(BaseModel):
    rules: list[ValidationRuleRequest] = Field(..., min_length=1, max_length=100)

    class Config:
        json_schema_extra = {
            "example": {
                "rules": [
                    {"field": "email", "value": "user@example.com", "rules": ["required", "email"]},
                    {"field": "age", "value": 17, "rules": ["numeric", "min:18"]},
                ]
            }
        }


class FieldValidationErrorResponse(BaseModel):
    field: str
    rule: str
    message: str
    value: Any = None


class ValidateResponse(BaseModel):
    success: bool = True
    is_valid: bool
    errors: list[FieldValidationErrorResponse]
