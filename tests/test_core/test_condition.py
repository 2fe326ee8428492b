"""Tests for condition evaluation and validation."""

from __future__ import annotations

import pytest

from agentchain.core.condition import evaluate_condition, validate_condition


class TestEvaluateCondition:
    def test_contains_is_case_insensitive(self):
        assert evaluate_condition("contains('error')", "an ERROR occurred") is True

    def test_contains_double_quotes(self):
        assert evaluate_condition('contains("otter")', "Sea Otters float") is True

    def test_contains_missing(self):
        assert evaluate_condition("contains('error')", "all good") is False

    def test_starts_with(self):
        assert evaluate_condition("starts_with('yes')", "Yes, approved") is True
        assert evaluate_condition("starts_with('yes')", "No") is False

    def test_ends_with(self):
        assert evaluate_condition("ends_with('done.')", "All DONE.") is True
        assert evaluate_condition("ends_with('done')", "done already") is False

    @pytest.mark.parametrize(
        "condition,content,expected",
        [
            ("length > 10", "short", False),
            ("length > 3", "short", True),
            ("length < 6", "short", True),
            ("length >= 5", "short", True),
            ("length <= 4", "short", False),
            ("length == 5", "short", True),
            ("length = 5", "short", True),
        ],
    )
    def test_length_operators(self, condition, content, expected):
        assert evaluate_condition(condition, content) is expected

    def test_length_uses_raw_content(self):
        assert evaluate_condition("LENGTH > 2", "ABC") is True

    def test_unknown_syntax_is_false(self):
        assert evaluate_condition("bogus(", "x") is False

    def test_empty_inputs_are_false(self):
        assert evaluate_condition("", "text") is False
        assert evaluate_condition("contains('a')", "") is False

    def test_non_string_inputs_are_false(self):
        assert evaluate_condition(None, "text") is False
        assert evaluate_condition("contains('a')", None) is False

    def test_first_matching_shape_wins(self):
        # contains() is checked before length
        assert evaluate_condition("contains('zzz') and length > 1", "abc") is False


class TestValidateCondition:
    def test_empty(self):
        result = validate_condition("")
        assert result.is_valid is False
        assert result.error == "Condition cannot be empty"

    def test_whitespace_only(self):
        assert validate_condition("   ").is_valid is False

    @pytest.mark.parametrize(
        "condition",
        ["contains('x')", "starts_with('x')", "ends_with('x')", "length > 100", "length=3"],
    )
    def test_supported_shapes(self, condition):
        result = validate_condition(condition)
        assert result.is_valid is True
        assert result.error is None

    def test_unsupported(self):
        result = validate_condition("matches('x')")
        assert result.is_valid is False
        assert "Unsupported condition format" in result.error
