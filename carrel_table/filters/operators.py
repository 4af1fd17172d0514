"""
Built-in filter operators.

Each operator is a pure predicate `(field_value, filter_value, row) -> bool`.
String operators compare case-insensitively, range operators are inclusive on
both bounds and need exactly two bounds.
"""
from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, Callable, Dict, Optional

import pandas as pd

FilterFn = Callable[[Any, Any, Optional[Any]], bool]


class FilterOperator(str, Enum):
    # Equality
    EQ = "eq"
    NEQ = "neq"
    # Comparison
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    # String operations
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    # Array operations
    IN = "in"
    NOT_IN = "notIn"
    # Range
    BETWEEN = "between"
    NOT_BETWEEN = "notBetween"
    # Null checks
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"
    # Pattern matching
    REGEX = "regex"
    NOT_REGEX = "notRegex"
    # Dates
    BEFORE = "before"
    AFTER = "after"
    DATE_RANGE = "dateRange"


NO_VALUE_OPERATORS = frozenset({FilterOperator.IS_NULL.value, FilterOperator.IS_NOT_NULL.value})
RANGE_OPERATORS = frozenset(
    {FilterOperator.BETWEEN.value, FilterOperator.NOT_BETWEEN.value, FilterOperator.DATE_RANGE.value}
)
LIST_OPERATORS = frozenset({FilterOperator.IN.value, FilterOperator.NOT_IN.value})


# -------------------------------------------------------------------------
# Coercion helpers
# -------------------------------------------------------------------------

def is_missing(value: Any) -> bool:
    """None, NaN and NaT all count as null."""
    if value is None:
        return True
    return bool(pd.api.types.is_scalar(value) and pd.isna(value))


def _to_number(value: Any) -> float:
    if value is None or isinstance(value, str) and not value.strip():
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _to_timestamp(value: Any) -> Any:
    if is_missing(value) or not pd.api.types.is_scalar(value):
        return pd.NaT
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return pd.to_datetime(value, unit="ms", errors="coerce")
    try:
        return pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError):
        return pd.NaT


def _compare_dates(left: Any, right: Any, op: Callable[[Any, Any], bool]) -> bool:
    a = _to_timestamp(left)
    b = _to_timestamp(right)
    if pd.isna(a) or pd.isna(b):
        return False
    try:
        return bool(op(a, b))
    except TypeError:
        # tz-aware vs naive
        return False


def _is_pair(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) == 2


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _lower(value: Any) -> str:
    return str(value).lower()


# -------------------------------------------------------------------------
# Operators
# -------------------------------------------------------------------------

def _contains(value: Any, filter_value: Any, row: Any = None) -> bool:
    if is_missing(value) or filter_value is None:
        return False
    return _lower(filter_value) in _lower(value)


def _not_contains(value: Any, filter_value: Any, row: Any = None) -> bool:
    if is_missing(value) or filter_value is None:
        return True
    return _lower(filter_value) not in _lower(value)


def _starts_with(value: Any, filter_value: Any, row: Any = None) -> bool:
    if is_missing(value) or filter_value is None:
        return False
    return _lower(value).startswith(_lower(filter_value))


def _ends_with(value: Any, filter_value: Any, row: Any = None) -> bool:
    if is_missing(value) or filter_value is None:
        return False
    return _lower(value).endswith(_lower(filter_value))


def _between(value: Any, filter_value: Any, row: Any = None) -> bool:
    if not _is_pair(filter_value):
        return False
    low, high = filter_value
    number = _to_number(value)
    return _to_number(low) <= number <= _to_number(high)


def _not_between(value: Any, filter_value: Any, row: Any = None) -> bool:
    if not _is_pair(filter_value):
        return True
    low, high = filter_value
    number = _to_number(value)
    return number < _to_number(low) or number > _to_number(high)


def _regex(value: Any, filter_value: Any, row: Any = None) -> bool:
    if is_missing(value):
        return False
    try:
        return re.search(str(filter_value), str(value), re.IGNORECASE) is not None
    except re.error:
        return False


def _not_regex(value: Any, filter_value: Any, row: Any = None) -> bool:
    if is_missing(value):
        return True
    try:
        return re.search(str(filter_value), str(value), re.IGNORECASE) is None
    except re.error:
        return True


def _date_range(value: Any, filter_value: Any, row: Any = None) -> bool:
    if not _is_pair(filter_value):
        return False
    start, end = filter_value
    return _compare_dates(value, start, lambda a, b: a >= b) and _compare_dates(
        value, end, lambda a, b: a <= b
    )


BUILTIN_FILTERS: Dict[str, FilterFn] = {
    "eq": lambda value, filter_value, row=None: value == filter_value,
    "neq": lambda value, filter_value, row=None: value != filter_value,
    "lt": lambda value, filter_value, row=None: _to_number(value) < _to_number(filter_value),
    "lte": lambda value, filter_value, row=None: _to_number(value) <= _to_number(filter_value),
    "gt": lambda value, filter_value, row=None: _to_number(value) > _to_number(filter_value),
    "gte": lambda value, filter_value, row=None: _to_number(value) >= _to_number(filter_value),
    "contains": _contains,
    "notContains": _not_contains,
    "startsWith": _starts_with,
    "endsWith": _ends_with,
    "in": lambda value, filter_value, row=None: _is_list(filter_value) and value in filter_value,
    "notIn": lambda value, filter_value, row=None: not _is_list(filter_value) or value not in filter_value,
    "between": _between,
    "notBetween": _not_between,
    "isNull": lambda value, filter_value=None, row=None: is_missing(value),
    "isNotNull": lambda value, filter_value=None, row=None: not is_missing(value),
    "regex": _regex,
    "notRegex": _not_regex,
    "before": lambda value, filter_value, row=None: _compare_dates(value, filter_value, lambda a, b: a < b),
    "after": lambda value, filter_value, row=None: _compare_dates(value, filter_value, lambda a, b: a > b),
    "dateRange": _date_range,
}
