"""
Data Transfer Objects (DTOs) package.

DTOs are simple dataclasses used to transfer data between layers.
"""

from src.dtos.error_dto import ErrorDetailsDTO
from src.dtos.principal_dto import PrincipalDTO, Role
from src.dtos.rate_limit_dto import (
    FailurePolicy,
    IdentityKind,
    ProgressiveRateLimitResult,
    RateLimitEntry,
    RateLimitKey,
    RateLimitLevel,
    RateLimitOverview,
    RateLimitResult,
    RateLimitStoreUnavailable,
)
from src.dtos.validation_dto import (
    FieldValidationError,
    ValidationResult,
    ValidationRule,
)

__all__ = [
    "ErrorDetailsDTO",
    "PrincipalDTO",
    "Role",
    "FailurePolicy",
    "IdentityKind",
    "ProgressiveRateLimitResult",
    "RateLimitEntry",
    "RateLimitKey",
    "RateLimitLevel",
    "RateLimitOverview",
    "RateLimitResult",
    "RateLimitStoreUnavailable",
    "FieldValidationError",
    "ValidationResult",
    "ValidationRule",
]
