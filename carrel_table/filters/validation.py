from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .model import FilterCondition, FilterGroup, FilterNode
from .operators import LIST_OPERATORS, NO_VALUE_OPERATORS, RANGE_OPERATORS


@dataclass(frozen=True)
class FilterValidation:
    valid: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    filter_id: Optional[str] = None


_OPERATORS_BY_TYPE = {
    "number": [
        "eq", "neq", "lt", "lte", "gt", "gte", "between", "notBetween",
        "in", "notIn", "isNull", "isNotNull",
    ],
    "string": [
        "eq", "neq", "contains", "notContains", "startsWith", "endsWith",
        "in", "notIn", "regex", "notRegex", "isNull", "isNotNull",
    ],
    "boolean": ["eq", "neq", "isNull", "isNotNull"],
    "date": ["eq", "neq", "before", "after", "between", "dateRange", "isNull", "isNotNull"],
    "array": ["contains", "notContains", "isNull", "isNotNull"],
}
_OPERATORS_BY_TYPE["datetime"] = _OPERATORS_BY_TYPE["date"]

_DEFAULT_OPERATORS = ["eq", "neq", "isNull", "isNotNull"]


def operators_for_type(column_type: str) -> List[str]:
    """Operators that make sense for a column of the given data type."""
    return list(_OPERATORS_BY_TYPE.get(column_type, _DEFAULT_OPERATORS))


def validate_filter_value(operator: str, value: Any) -> FilterValidation:
    """
    Check that `value` has the shape `operator` expects.

    - range operators (between / notBetween / dateRange): list of exactly 2
    - list operators (in / notIn): list
    - null checks: no value needed
    - everything else: any value, as long as one is given

    Never raises; the caller decides whether to block or coerce.
    """
    if operator in RANGE_OPERATORS:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            return FilterValidation(False, f"{operator} requires an array of exactly 2 values")
    elif operator in LIST_OPERATORS:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return FilterValidation(False, f"{operator} requires an array of values")
    elif operator in NO_VALUE_OPERATORS:
        pass
    elif value is None:
        return FilterValidation(False, f"{operator} requires a value")

    return FilterValidation(True)


def validate_filter_tree(
    node: FilterNode,
    is_known_operator: Optional[Callable[[str], bool]] = None,
) -> List[ValidationIssue]:
    """
    Walk a filter tree and collect every leaf problem.

    :param node: root of the tree
    :param is_known_operator: predicate for operator names; unknown operators are
                              reported as issues when given
    :return: list of issues, empty when the tree is valid
    """
    issues: List[ValidationIssue] = []

    def walk(current: FilterNode) -> None:
        if isinstance(current, FilterGroup):
            for child in current.children:
                walk(child)
            return

        assert isinstance(current, FilterCondition)
        if is_known_operator is not None and not is_known_operator(current.operator):
            issues.append(
                ValidationIssue(
                    code="unknown_operator",
                    message=f"Unknown filter operator: {current.operator}",
                    filter_id=current.id,
                )
            )
            return

        result = validate_filter_value(current.operator, current.value)
        if not result.valid:
            issues.append(
                ValidationIssue(code="invalid_value", message=result.message or "", filter_id=current.id)
            )

    walk(node)
    return issues
