# ============================================================================
# FILE: tests/unit/test_value_parser.py
# ============================================================================
"""
Unit tests for raw value parsing
"""

import pytest

from lab_ingestion.parsing import ParsedValue, format_interval_value, parse_value


def test_native_numbers_pass_through():
    """Test ints and floats are returned as-is"""
    assert parse_value(5.5) == ParsedValue(value=5.5)
    assert parse_value(7) == ParsedValue(value=7.0)


def test_decimal_comma():
    """Test localized decimal separator"""
    parsed = parse_value("5,5")
    assert parsed.value == 5.5
    assert parsed.raw_value is None
    assert not parsed.is_interval


def test_plain_number_with_trailing_flag():
    """Test trailing text after the number is ignored"""
    assert parse_value("5.5 H").value == 5.5
    assert parse_value("-3").value == -3.0


@pytest.mark.parametrize("raw,low,high", [
    ("5-10", 5.0, 10.0),
    ("5 – 10", 5.0, 10.0),
    ("2 to 4", 2.0, 4.0),
    ("3 A 5", 3.0, 5.0),
    ("1,5-2,5", 1.5, 2.5),
])
def test_intervals(raw, low, high):
    """Test interval forms produce a midpoint and keep both bounds"""
    parsed = parse_value(raw)
    assert parsed.is_interval
    assert parsed.interval_low == low
    assert parsed.interval_high == high
    assert parsed.value == pytest.approx((low + high) / 2)
    assert parsed.raw_value == raw
    assert not parsed.is_threshold


def test_reversed_interval_is_not_an_interval():
    """Test low > high falls through to plain number parsing"""
    parsed = parse_value("10-5")
    assert not parsed.is_interval
    assert parsed.interval_low is None


def test_less_than_threshold():
    """Test '< N' becomes value N with the raw text preserved"""
    parsed = parse_value("< 5")
    assert parsed.value == 5.0
    assert parsed.raw_value == "< 5"
    assert parsed.is_threshold
    assert not parsed.is_interval


def test_greater_than_threshold():
    parsed = parse_value(">100")
    assert parsed.value == 100.0
    assert parsed.is_threshold


def test_unparseable_keeps_raw_text():
    """Test text that is not a number yields 0 and keeps the original"""
    parsed = parse_value("negative")
    assert parsed.value == 0.0
    assert parsed.raw_value == "negative"
    assert not parsed.is_threshold


def test_empty_and_missing_values():
    assert parse_value("") == ParsedValue(value=0.0)
    assert parse_value("   ") == ParsedValue(value=0.0)
    assert parse_value(None) == ParsedValue(value=0.0)


def test_non_string_objects():
    """Test booleans and other objects are not treated as numbers"""
    parsed = parse_value(True)
    assert parsed.value == 0.0
    assert parsed.raw_value == "True"


def test_format_interval_value():
    assert format_interval_value(5, 10) == "5-10"
    assert format_interval_value(1.5, 2.5, "/HPF") == "1.5-2.5 /HPF"
