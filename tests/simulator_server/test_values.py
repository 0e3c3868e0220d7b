"""Tests for JavaScript-style value coercion."""

import copy
import math

from wavesim.simulator_server.workflow.values import (
    UNDEFINED,
    compare,
    display_string,
    format_number,
    is_structured_data,
    loose_equals,
    parse_int_prefix,
    parse_number,
    to_boolean,
    to_number,
    to_string,
)


class TestTruthiness:
    """Test to_boolean."""

    def test_falsy_values(self):
        """Test the values JavaScript treats as false."""
        for value in (None, UNDEFINED, False, 0, 0.0, float("nan"), ""):
            assert to_boolean(value) is False, value

    def test_truthy_values(self):
        """Test that strings, containers and non-zero numbers are true."""
        for value in ("0", "false", " ", [], {}, -1, 0.5, True):
            assert to_boolean(value) is True, value


class TestNumberConversion:
    """Test parse_number and to_number."""

    def test_parse_number_forms(self):
        """Test decimal, exponent, radix and infinity forms."""
        assert parse_number("42") == 42
        assert parse_number(" -1.5 ") == -1.5
        assert parse_number(".5") == 0.5
        assert parse_number("5.") == 5.0
        assert parse_number("1e3") == 1000.0
        assert parse_number("0x1F") == 31
        assert parse_number("0b101") == 5
        assert parse_number("Infinity") == math.inf
        assert parse_number("-Infinity") == -math.inf

    def test_parse_number_rejects_non_numbers(self):
        """Test that malformed text is not a number."""
        for text in ("", "abc", "1e", "1 2", "12px", "+0x1"):
            assert parse_number(text) is None, text

    def test_integer_text_stays_integer(self):
        """Test that integer text parses to int, not float."""
        assert isinstance(parse_number("7"), int)
        assert isinstance(parse_number("7.0"), float)

    def test_to_number(self):
        """Test Number() coercion of every value kind."""
        assert to_number(None) == 0
        assert math.isnan(to_number(UNDEFINED))
        assert to_number(True) == 1
        assert to_number(False) == 0
        assert to_number("") == 0
        assert to_number("  ") == 0
        assert to_number(" 12 ") == 12
        assert math.isnan(to_number("abc"))
        assert to_number([]) == 0
        assert to_number([5]) == 5
        assert math.isnan(to_number([1, 2]))
        assert math.isnan(to_number({}))

    def test_parse_int_prefix(self):
        """Test parseInt-style leading integers."""
        assert parse_int_prefix("12abc") == 12
        assert parse_int_prefix(" -3") == -3
        assert parse_int_prefix("1.7") == 1
        assert parse_int_prefix("abc") is None


class TestStringConversion:
    """Test to_string and number formatting."""

    def test_format_number(self):
        """Test that numbers print like String(n)."""
        assert format_number(1.0) == "1"
        assert format_number(-0.0) == "0"
        assert format_number(1.5) == "1.5"
        assert format_number(0.1 + 0.2) == "0.30000000000000004"
        assert format_number(1e21) == "1e+21"
        assert format_number(1e-7) == "1e-7"
        assert format_number(float("nan")) == "NaN"
        assert format_number(float("-inf")) == "-Infinity"

    def test_to_string(self):
        """Test String() of keywords and containers."""
        assert to_string(None) == "null"
        assert to_string(UNDEFINED) == "undefined"
        assert to_string(True) == "true"
        assert to_string([1, None, "a"]) == "1,,a"
        assert to_string([[1, 2], 3]) == "1,2,3"
        assert to_string({"a": 1}) == "[object Object]"

    def test_display_string_renders_null_empty(self):
        """Test that nullish values render as empty text."""
        assert display_string(None) == ""
        assert display_string(UNDEFINED) == ""
        assert display_string(0) == "0"


class TestEquality:
    """Test loose_equals."""

    def test_cross_type_equality(self):
        """Test coercing comparisons between numbers, strings and booleans."""
        assert loose_equals("1", 1)
        assert loose_equals("", 0)
        assert loose_equals(True, "1")
        assert loose_equals(False, 0)
        assert not loose_equals("abc", 0)

    def test_nullish_only_equals_nullish(self):
        """Test that null equals only null and missing values."""
        assert loose_equals(None, UNDEFINED)
        assert loose_equals(None, None)
        assert not loose_equals(None, 0)
        assert not loose_equals(None, "")
        assert not loose_equals(UNDEFINED, False)

    def test_containers_compare_by_identity(self):
        """Test that lists and maps are equal only to themselves."""
        items = [1, 2]
        assert loose_equals(items, items)
        assert not loose_equals([1, 2], [1, 2])
        assert not loose_equals({}, {})

    def test_container_against_primitive(self):
        """Test that containers reduce to their string form."""
        assert loose_equals([1], 1)
        assert loose_equals([], "")
        assert loose_equals([1, 2], "1,2")


class TestRelational:
    """Test compare."""

    def test_strings_compare_lexicographically(self):
        """Test that two strings never become numbers."""
        assert compare("<", "10", "9")
        assert compare(">", "b", "a")

    def test_mixed_operands_compare_numerically(self):
        """Test that a number on either side forces numeric comparison."""
        assert not compare("<", 10, "9")
        assert compare(">=", None, 0)
        assert compare("<=", True, 1)

    def test_nan_is_never_ordered(self):
        """Test that NaN makes every relational operator false."""
        for operator in ("<", ">", "<=", ">="):
            assert not compare(operator, UNDEFINED, -1)
            assert not compare(operator, "abc", 1)


class TestStructuredData:
    """Test is_structured_data and the UNDEFINED sentinel."""

    def test_json_compatible_values(self):
        """Test nested JSON-compatible values."""
        assert is_structured_data({"items": [{"id": 1, "ok": True, "score": 1.5}], "next": None})
        assert is_structured_data("plain")

    def test_rejected_values(self):
        """Test values that cannot be expressed as JSON."""
        assert not is_structured_data(float("nan"))
        assert not is_structured_data({"a": float("inf")})
        assert not is_structured_data({1: "a"})
        assert not is_structured_data(object())
        assert not is_structured_data([UNDEFINED])

    def test_undefined_is_a_singleton(self):
        """Test that copies of UNDEFINED keep its identity."""
        assert copy.deepcopy({"a": UNDEFINED})["a"] is UNDEFINED
        assert copy.copy(UNDEFINED) is UNDEFINED
        assert not UNDEFINED
