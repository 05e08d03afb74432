"""
Input sanitization for request payloads.

Walks a parsed JSON document and returns a cleaned copy: operator keys that
could be smuggled into document-store queries are dropped and markup or
script fragments are stripped from strings. Numbers, booleans and nulls pass
through untouched and list order is preserved.
"""

from __future__ import annotations

import re
from typing import Union

from src.core.errors import ErrorCode, create_error
from src.core.logging import get_logger

logger = get_logger(__name__)

JSONValue = Union[None, bool, int, float, str, list["JSONValue"], dict[str, "JSONValue"]]

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE | re.ASCII)
_EMAIL_DISALLOWED = re.compile(r"[^\w@.-]", re.ASCII)
_PHONE_DISALLOWED = re.compile(r"[^\d+\-\s()]", re.ASCII)


def is_operator_key(key: str) -> bool:
    """True for ``$where``-style keys, including dotted paths like ``a.$gt``."""
    return any(segment.startswith("$") for segment in key.split("."))


class InputSanitizer:
    """Recursive visitor over ``JSONValue`` trees."""

    MAX_DEPTH = 64

    def sanitize(self, value: JSONValue, depth: int = 0) -> JSONValue:
        if isinstance(value, dict):
            return self.sanitize_object(value, depth)
        if isinstance(value, list):
            return self.sanitize_array(value, depth)
        if isinstance(value, str):
            return self.sanitize_string(value)
        return value

    def sanitize_object(self, value: dict[str, JSONValue], depth: int = 0) -> dict[str, JSONValue]:
        self._check_depth(depth)
        sanitized: dict[str, JSONValue] = {}
        for key, item in value.items():
            if is_operator_key(key):
                logger.warning("operator_key_dropped", key=key)
                continue
            sanitized[key] = self.sanitize(item, depth + 1)
        return sanitized

    def sanitize_array(self, value: list[JSONValue], depth: int = 0) -> list[JSONValue]:
        self._check_depth(depth)
        return [self.sanitize(item, depth + 1) for item in value]

    def _check_depth(self, depth: int) -> None:
        if depth >= self.MAX_DEPTH:
            raise create_error(
                ErrorCode.INVALID_INPUT_FORMAT,
                f"Payload nested deeper than {self.MAX_DEPTH} levels",
                "Invalid request body.",
            )

    @staticmethod
    def sanitize_string(value: str) -> str:
        value = _ANGLE_BRACKETS.sub("", value)
        value = _JS_PROTOCOL.sub("", value)
        value = _EVENT_HANDLER.sub("", value)
        return value.strip()

    def sanitize_query(self, query: dict[str, JSONValue]) -> dict[str, JSONValue]:
        """Sanitize a filter document before it reaches the document store."""
        return self.sanitize_object(query)

    @staticmethod
    def sanitize_email(email: str) -> str:
        return _EMAIL_DISALLOWED.sub("", email.lower().strip())

    @staticmethod
    def sanitize_phone_number(phone: str) -> str:
        return _PHONE_DISALLOWED.sub("", phone).strip()
