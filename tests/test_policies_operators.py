"""Tests for condition operators.

Tests for operator normalization, coercion, fail-closed handling of
undefined attributes, and regular expression guards.
"""

from datetime import date

import pytest
from accesslayer.core.errors import EvaluationError
from accesslayer.policies.attributes import UNDEFINED
from accesslayer.policies.operators import (
    Operator,
    apply_operator,
    normalize_operator,
    values_equal,
)


class TestNormalizeOperator:
    """Tests for canonical and legacy operator names."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("=", Operator.EQ),
            ("==", Operator.EQ),
            ("equals", Operator.EQ),
            ("not_equals", Operator.NE),
            ("greater_than", Operator.GT),
            ("less_than", Operator.LT),
            ("greater_than_or_equal", Operator.GTE),
            ("less_than_or_equal", Operator.LTE),
            ("in", Operator.IN),
            ("not_in", Operator.NOT_IN),
            ("contains", Operator.CONTAINS),
            ("not_contains", Operator.NOT_CONTAINS),
            ("between", Operator.BETWEEN),
            ("matches_regex", Operator.MATCHES),
            ("starts_with", Operator.STARTS_WITH),
            ("ends_with", Operator.ENDS_WITH),
            ("NOT_IN", Operator.NOT_IN),
            (" >= ", Operator.GTE),
        ],
    )
    def test_known_names(self, raw, expected):
        assert normalize_operator(raw) is expected

    def test_unknown(self):
        assert normalize_operator("approximately") is None
        assert normalize_operator(None) is None
        assert normalize_operator(3) is None


class TestValuesEqual:
    """Tests for equality with coercion."""

    def test_numeric_string_against_number(self):
        assert values_equal("5", 5)
        assert values_equal(5.0, 5)
        assert not values_equal("five", 5)

    def test_boolean_strings(self):
        assert values_equal(True, "true")
        assert values_equal("false", False)
        assert not values_equal(1, True)

    def test_dates(self):
        assert values_equal(date(2024, 1, 1), "2024-01-01")

    def test_strings_are_case_sensitive(self):
        assert not values_equal("HR", "hr")

    def test_undefined_equals_nothing(self):
        assert not values_equal(UNDEFINED, UNDEFINED)
        assert not values_equal(UNDEFINED, None)

    def test_null_equals_null(self):
        assert values_equal(None, None)


class TestEquality:
    """Tests for = and !=."""

    def test_eq(self):
        assert apply_operator(Operator.EQ, "hr", "hr")
        assert not apply_operator(Operator.EQ, "hr", "it")

    def test_eq_undefined_is_false(self):
        assert not apply_operator(Operator.EQ, UNDEFINED, "hr")
        assert not apply_operator(Operator.EQ, "hr", UNDEFINED)

    def test_ne_undefined_is_true(self):
        assert apply_operator(Operator.NE, UNDEFINED, "hr")
        assert apply_operator(Operator.NE, "hr", UNDEFINED)

    def test_ne(self):
        assert apply_operator(Operator.NE, "hr", "it")
        assert not apply_operator(Operator.NE, 5, "5")


class TestOrdering:
    """Tests for >, <, >=, <=."""

    def test_numeric(self):
        assert apply_operator(Operator.GT, 10, 5)
        assert apply_operator(Operator.LT, "3", 5)
        assert apply_operator(Operator.GTE, 5, 5)
        assert apply_operator(Operator.LTE, 4.5, 5)

    def test_dates(self):
        assert apply_operator(Operator.GT, "2024-06-02", "2024-06-01")
        assert apply_operator(Operator.LT, date(2024, 1, 1), "2024-06-01")

    def test_incomparable_is_false(self):
        assert not apply_operator(Operator.GT, "abc", 5)
        assert not apply_operator(Operator.GT, True, 0)
        assert not apply_operator(Operator.LT, "abc", "abd")

    def test_undefined_is_false(self):
        assert not apply_operator(Operator.GT, UNDEFINED, 5)
        assert not apply_operator(Operator.LTE, UNDEFINED, 5)


class TestMembership:
    """Tests for IN and NOT_IN."""

    def test_in(self):
        assert apply_operator(Operator.IN, "hr", ["hr", "it"])
        assert apply_operator(Operator.IN, "5", [5, 6])
        assert not apply_operator(Operator.IN, "ops", ["hr", "it"])

    def test_not_in(self):
        assert apply_operator(Operator.NOT_IN, "ops", ["hr", "it"])
        assert not apply_operator(Operator.NOT_IN, "hr", ["hr", "it"])

    def test_undefined_attribute(self):
        assert not apply_operator(Operator.IN, UNDEFINED, ["hr"])
        assert apply_operator(Operator.NOT_IN, UNDEFINED, ["hr"])

    def test_non_array_value_is_false_for_both(self):
        assert not apply_operator(Operator.IN, "hr", "hr")
        assert not apply_operator(Operator.NOT_IN, "hr", "it")
        assert not apply_operator(Operator.NOT_IN, UNDEFINED, UNDEFINED)

    def test_tuple_value(self):
        assert apply_operator(Operator.IN, "hr", ("hr",))


class TestStringOperators:
    """Tests for CONTAINS, NOT_CONTAINS, STARTS_WITH, ENDS_WITH."""

    def test_contains_substring(self):
        assert apply_operator(Operator.CONTAINS, "engineering", "gine")
        assert not apply_operator(Operator.CONTAINS, "engineering", "Gine")

    def test_contains_list_membership(self):
        assert apply_operator(Operator.CONTAINS, ["admin", "viewer"], "admin")
        assert not apply_operator(Operator.CONTAINS, ["administrator"], "admin")

    def test_contains_stringifies(self):
        assert apply_operator(Operator.CONTAINS, 12345, 234)

    def test_contains_undefined(self):
        assert not apply_operator(Operator.CONTAINS, UNDEFINED, "a")
        assert not apply_operator(Operator.CONTAINS, "abc", UNDEFINED)

    def test_not_contains(self):
        assert apply_operator(Operator.NOT_CONTAINS, "engineering", "sales")
        assert not apply_operator(Operator.NOT_CONTAINS, "engineering", "eng")

    def test_not_contains_undefined(self):
        assert apply_operator(Operator.NOT_CONTAINS, UNDEFINED, "a")
        assert not apply_operator(Operator.NOT_CONTAINS, "abc", UNDEFINED)

    def test_starts_and_ends_with(self):
        assert apply_operator(Operator.STARTS_WITH, "payment:approve", "payment:")
        assert apply_operator(Operator.ENDS_WITH, "report.pdf", ".pdf")
        assert not apply_operator(Operator.STARTS_WITH, UNDEFINED, "")
        assert not apply_operator(Operator.ENDS_WITH, "a", UNDEFINED)


class TestMatches:
    """Tests for MATCHES."""

    def test_search_semantics(self):
        """MATCHES finds the pattern anywhere unless anchored."""
        assert apply_operator(Operator.MATCHES, "user@example.com", r"@example\.com")
        assert not apply_operator(Operator.MATCHES, "user@example.com", r"^example")

    def test_stringifies_attribute(self):
        assert apply_operator(Operator.MATCHES, 2024, r"^\d{4}$")

    def test_undefined_attribute(self):
        assert not apply_operator(Operator.MATCHES, UNDEFINED, ".*")

    def test_invalid_pattern_raises(self):
        with pytest.raises(EvaluationError, match="invalid regular expression"):
            apply_operator(Operator.MATCHES, "abc", "(unclosed")

    def test_long_pattern_raises(self):
        with pytest.raises(EvaluationError, match="too long"):
            apply_operator(Operator.MATCHES, "abc", "a" * 20, max_regex_length=10)


class TestBetween:
    """Tests for BETWEEN."""

    def test_inclusive(self):
        assert apply_operator(Operator.BETWEEN, 9, [9, 17])
        assert apply_operator(Operator.BETWEEN, 17, [9, 17])
        assert not apply_operator(Operator.BETWEEN, 18, [9, 17])

    def test_dates(self):
        assert apply_operator(Operator.BETWEEN, "2024-06-15", ["2024-06-01", "2024-06-30"])

    def test_malformed_is_false(self):
        assert not apply_operator(Operator.BETWEEN, 5, [1])
        assert not apply_operator(Operator.BETWEEN, 5, "1-10")
        assert not apply_operator(Operator.BETWEEN, "abc", [1, 10])
        assert not apply_operator(Operator.BETWEEN, UNDEFINED, [1, 10])
