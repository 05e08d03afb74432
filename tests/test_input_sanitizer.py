"""
Tests for payload sanitization.
"""

import pytest

from src.core.errors import AppError, ErrorCode
from src.services.input_sanitizer import InputSanitizer, is_operator_key


@pytest.fixture
def sanitizer():
    return InputSanitizer()


class TestSanitizeString:
    @pytest.mark.parametrize("raw,expected", [
        ("<script>alert(1)</script>", "scriptalert(1)/script"),
        ("javascript:alert(1)", "alert(1)"),
        ("JavaScript:void(0)", "void(0)"),
        ('x onclick="steal()"', 'x "steal()"'),
        ("img onerror =boom", "img boom"),
        ("  padded  ", "padded"),
        ("plain text", "plain text"),
    ])
    def test_strips_markup_and_script_fragments(self, raw, expected):
        assert InputSanitizer.sanitize_string(raw) == expected


class TestSanitize:
    def test_drops_operator_keys_recursively(self, sanitizer):
        payload = {
            "name": "<b>Jane</b>",
            "$where": "sleep(1000)",
            "filter": {"age": {"$gt": 18}, "city": "Pune"},
            "profile.$set": {"role": "administrator"},
        }

        assert sanitizer.sanitize(payload) == {
            "name": "bJane/b",
            "filter": {"age": {}, "city": "Pune"},
        }

    def test_scalars_pass_through(self, sanitizer):
        payload = {"count": 3, "ratio": 0.5, "active": False, "note": None}

        assert sanitizer.sanitize(payload) == payload

    def test_array_order_is_preserved(self, sanitizer):
        assert sanitizer.sanitize(["<a>", 1, {"$ne": 1, "k": "v"}, [" x "]]) == ["a", 1, {"k": "v"}, ["x"]]

    def test_top_level_string(self, sanitizer):
        assert sanitizer.sanitize(" <hi> ") == "hi"

    def test_input_is_not_mutated(self, sanitizer):
        payload = {"$where": "1", "nested": {"name": "<x>"}}

        sanitizer.sanitize(payload)

        assert payload == {"$where": "1", "nested": {"name": "<x>"}}

    def test_sanitize_query(self, sanitizer):
        assert sanitizer.sanitize_query({"email": "a@b.co", "$or": []}) == {"email": "a@b.co"}

    def test_nesting_beyond_max_depth_is_rejected(self, sanitizer):
        payload: list = []
        for _ in range(InputSanitizer.MAX_DEPTH):
            payload = [payload]

        with pytest.raises(AppError) as exc_info:
            sanitizer.sanitize(payload)

        assert exc_info.value.code == ErrorCode.INVALID_INPUT_FORMAT
        assert exc_info.value.status_code == 400

    def test_nesting_at_max_depth_is_accepted(self, sanitizer):
        payload: dict = {"leaf": " <x> "}
        for _ in range(InputSanitizer.MAX_DEPTH - 1):
            payload = {"k": payload}

        result = sanitizer.sanitize(payload)
        for _ in range(InputSanitizer.MAX_DEPTH - 1):
            result = result["k"]
        assert result == {"leaf": "x"}


class TestIsOperatorKey:
    @pytest.mark.parametrize("key", ["$where", "$gt", "a.$gt", "a.b.$set"])
    def test_operator_keys(self, key):
        assert is_operator_key(key)

    @pytest.mark.parametrize("key", ["price", "price$", "a.b", "us$d"])
    def test_regular_keys(self, key):
        assert not is_operator_key(key)


class TestFieldHelpers:
    def test_sanitize_email(self):
        assert InputSanitizer.sanitize_email("  Jane.Doe+Tag@Example.COM ") == "jane.doetag@example.com"

    def test_sanitize_phone_number(self):
        assert InputSanitizer.sanitize_phone_number("+1 (555) 123-4567 ext.9") == "+1 (555) 123-4567 9"

    def test_sanitize_phone_number_trims(self):
        assert InputSanitizer.sanitize_phone_number(" 555 ") == "555"
        assert InputSanitizer.sanitize_phone_number("tel: 555-0100") == "555-0100"
