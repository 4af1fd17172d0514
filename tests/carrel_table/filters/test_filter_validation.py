from __future__ import annotations

import pytest

from carrel_table.filters.validation import operators_for_type, validate_filter_value


@pytest.mark.parametrize(
    "operator, value, valid",
    [
        ("between", [1, 2], True),
        ("between", [1], False),
        ("dateRange", "2024-01-01", False),
        ("in", ["a"], True),
        ("notIn", "a", False),
        ("isNull", None, True),
        ("eq", None, False),
        ("eq", 0, True),
    ],
)
def test_validate_filter_value(operator, value, valid):
    assert validate_filter_value(operator, value).valid is valid


def test_invalid_range_has_message():
    result = validate_filter_value("between", [1, 2, 3])
    assert result.message == "between requires an array of exactly 2 values"


def test_operators_for_type():
    assert "between" in operators_for_type("number")
    assert "regex" in operators_for_type("string")
    assert operators_for_type("datetime") == operators_for_type("date")
    assert operators_for_type("unknown") == ["eq", "neq", "isNull", "isNotNull"]
