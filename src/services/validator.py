"""
Declarative field validation.

Two styles coexist:

* ``Validator.validate`` / ``Validator.validate_field`` evaluate rule lists and
  return every failure, for batch form validation.
* ``validate_pagination``, ``validate_email``, ``validate_password`` and
  ``validate_object_id`` are one-shot server-side guards that raise
  ``AppError`` (VALIDATION_ERROR) instead of returning a result.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Optional

from src.core.errors import AppError, ErrorCode, create_error
from src.dtos.validation_dto import FieldValidationError, ValidationResult, ValidationRule

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")
PHONE_SEPARATORS = re.compile(r"[\s\-().]")
OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
RADIX_PATTERN = re.compile(r"^0([xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$")
SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
MIN_PASSWORD_LENGTH = 8


def to_number(value: Any) -> float:
    """
    Coerce *value* the way JavaScript's ``Number()`` does.

    Anything that is not numeric becomes ``nan``; callers rely on every
    comparison with ``nan`` being false.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if DECIMAL_PATTERN.match(text):
            return float(text)
        if RADIX_PATTERN.match(text):
            return float(int(text, 0))
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        return math.nan
    if isinstance(value, list):
        if not value:
            return 0.0
        if len(value) == 1:
            return to_number(str(value[0]) if value[0] is not None else "")
    return math.nan


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _length(value: Any) -> int:
    if isinstance(value, (str, list, tuple)):
        return len(value)
    return len(str(value))


def _parse_param(param: Optional[str]) -> float:
    return to_number(param) if param is not None else math.nan


def _format_param(param: Optional[str]) -> str:
    return param if param is not None else ""


# Each check returns True when the value passes.
def _check_email(value: Any, _param: Optional[str]) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def _check_phone(value: Any, _param: Optional[str]) -> bool:
    return bool(PHONE_PATTERN.match(PHONE_SEPARATORS.sub("", str(value))))


def _check_min(value: Any, param: Optional[str]) -> bool:
    # nan < bound is false, so non-numeric values pass
    return not (to_number(value) < _parse_param(param))


def _check_max(value: Any, param: Optional[str]) -> bool:
    return not (to_number(value) > _parse_param(param))


def _check_min_length(value: Any, param: Optional[str]) -> bool:
    return not (_length(value) < _parse_param(param))


def _check_max_length(value: Any, param: Optional[str]) -> bool:
    return not (_length(value) > _parse_param(param))


def _check_numeric(value: Any, _param: Optional[str]) -> bool:
    return not math.isnan(to_number(value))


def _check_object_id(value: Any, _param: Optional[str]) -> bool:
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


_RULES: dict[str, tuple[Callable[[Any, Optional[str]], bool], Callable[[str, str], str]]] = {
    "email": (_check_email, lambda f, p: f"{f} must be a valid email address"),
    "phone": (_check_phone, lambda f, p: f"{f} must be a valid phone number"),
    "min": (_check_min, lambda f, p: f"{f} must be at least {p}"),
    "max": (_check_max, lambda f, p: f"{f} must be at most {p}"),
    "minLength": (_check_min_length, lambda f, p: f"{f} must be at least {p} characters long"),
    "maxLength": (_check_max_length, lambda f, p: f"{f} must be no more than {p} characters long"),
    "numeric": (_check_numeric, lambda f, p: f"{f} must be a number"),
    "objectId": (_check_object_id, lambda f, p: f"{f} must be a valid ID"),
}


class Validator:
    """Rule-list validation plus throwing guards for one-shot checks."""

    @classmethod
    def validate(cls, rules: list[ValidationRule]) -> ValidationResult:
        """Evaluate every rule of every field; never stops at the first failure."""
        errors: list[FieldValidationError] = []
        for rule in rules:
            errors.extend(cls.validate_field(rule))
        return ValidationResult(is_valid=not errors, errors=errors)

    @staticmethod
    def validate_field(rule: ValidationRule) -> list[FieldValidationError]:
        errors: list[FieldValidationError] = []
        value = rule.value
        absent = is_empty(value)

        for entry in rule.rules:
            name, _, raw_param = entry.partition(":")
            param = raw_param if raw_param else None

            if name == "required":
                if absent:
                    errors.append(FieldValidationError(
                        field=rule.field,
                        rule=name,
                        message=rule.custom_message or f"{rule.field} is required",
                        value=value,
                    ))
                continue

            handler = _RULES.get(name)
            # Unknown rule names are ignored; optional fields skip format checks
            if handler is None or absent:
                continue

            check, default_message = handler
            if not check(value, param):
                errors.append(FieldValidationError(
                    field=rule.field,
                    rule=name,
                    message=rule.custom_message or default_message(rule.field, _format_param(param)),
                    value=value,
                ))

        return errors

    # ── Throwing guards ────────────────────────────────────────────────────

    @staticmethod
    def _fail(message: str, details: Optional[dict[str, Any]] = None) -> AppError:
        return create_error(ErrorCode.VALIDATION_ERROR, message, message, details)

    @classmethod
    def validate_pagination(
        cls,
        page: Optional[str | int] = None,
        limit: Optional[str | int] = None,
    ) -> dict[str, int]:
        """
        Parse ``page``/``limit`` query parameters.

        Returns:
            ``{"page": int, "limit": int}`` with defaults 1 and 20

        Raises:
            AppError: page is not a positive integer, or limit is outside [1, 100]
        """
        parsed_page = DEFAULT_PAGE
        parsed_limit = DEFAULT_LIMIT

        if page is not None and str(page).strip() != "":
            try:
                parsed_page = int(str(page).strip())
            except ValueError:
                raise cls._fail("Page must be a positive integer", {"page": page})
            if parsed_page < 1:
                raise cls._fail("Page must be a positive integer", {"page": page})

        if limit is not None and str(limit).strip() != "":
            try:
                parsed_limit = int(str(limit).strip())
            except ValueError:
                raise cls._fail("Limit must be between 1 and 100", {"limit": limit})
            if not 1 <= parsed_limit <= MAX_LIMIT:
                raise cls._fail("Limit must be between 1 and 100", {"limit": limit})

        return {"page": parsed_page, "limit": parsed_limit}

    @classmethod
    def validate_email(cls, email: Optional[str]) -> None:
        if not email or not EMAIL_PATTERN.match(email.strip()):
            raise cls._fail("Invalid email format")

    @classmethod
    def validate_password(cls, password: Optional[str], require_strong: bool = False) -> None:
        """
        Check password length, and character classes when *require_strong* is set.

        The password itself is never included in the raised error.
        """
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise cls._fail(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

        if not require_strong:
            return

        issues = []
        if not re.search(r"[A-Z]", password):
            issues.append("one uppercase letter")
        if not re.search(r"[a-z]", password):
            issues.append("one lowercase letter")
        if not re.search(r"\d", password):
            issues.append("one number")
        if not SPECIAL_CHARACTERS.search(password):
            issues.append("one special character")

        if issues:
            raise cls._fail(
                "Password must contain at least " + ", ".join(issues),
                {"missing": issues},
            )

    @classmethod
    def validate_object_id(cls, value: Optional[str], field_name: str = "id") -> None:
        if not isinstance(value, str) or not OBJECT_ID_PATTERN.match(value):
            raise cls._fail(f"Invalid {field_name} format", {"field": field_name})
