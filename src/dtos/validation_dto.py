"""
Validation Data Transfer Objects.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ValidationRule:
    """A field value and the ordered rule names to check it against (e.g. ``"min:18"``)."""
    field: str
    value: Any
    rules: list[str]
    custom_message: Optional[str] = None


@dataclass
class FieldValidationError:
    """One failed rule for one field."""
    field: str
    rule: str
    message: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "rule": self.rule, "message": self.message, "value": self.value}


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[FieldValidationError] = field(default_factory=list)

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0].message if self.errors else None
