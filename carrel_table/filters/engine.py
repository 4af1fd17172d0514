from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .expression import parse_filter_expression
from .model import FilterCondition, FilterGroup, FilterNode, filter_from_dict
from .operators import BUILTIN_FILTERS, FilterFn, is_missing
from .validation import (
    FilterValidation,
    ValidationIssue,
    operators_for_type,
    validate_filter_tree,
    validate_filter_value,
)

logger = logging.getLogger(__name__)

FilterLike = Union[FilterNode, Mapping[str, Any]]


def get_field_value(row: Any, field: str) -> Any:
    """
    Resolve a dot-path ("user.address.city") against a row.

    Mappings are indexed by key, anything else by attribute. A missing link
    anywhere on the path gives None.
    """
    value = row
    for key in field.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(key)
        else:
            value = getattr(value, key, None)
    return value


def _own_fields(row: Any) -> List[str]:
    if isinstance(row, Mapping):
        return [str(k) for k in row.keys()]
    if hasattr(row, "__dict__"):
        return [k for k in vars(row) if not k.startswith("_")]
    return []


class FilterEngine:
    """
    Evaluates per-field operators and nested AND/OR filter trees over rows.

    Purpose:
    - Single place where filter semantics live, shared by in-memory data sources
      and client-side refinement of fetched pages
    - Built-in operators are module-level and stateless; each engine instance can
      register extra operators (or override built-ins) without affecting others

    Design Notes:
    - Operator lookup order: instance registrations first, then built-ins
    - Unknown operators fail open: the row passes and a warning is logged
    """

    def __init__(self) -> None:
        self._custom_filters: Dict[str, FilterFn] = {}

    # ------------------------------------------------------------------
    # Operator registry
    # ------------------------------------------------------------------
    def register_filter(self, name: str, fn: FilterFn) -> None:
        """
        Register a custom operator for this engine instance.

        A later registration for the same name replaces the earlier one and
        shadows a same-named built-in.
        """
        if not callable(fn):
            raise TypeError(f"Filter '{name}' must be callable")
        self._custom_filters[name] = fn

    def get_filter_fn(self, operator: str) -> Optional[FilterFn]:
        return self._custom_filters.get(operator) or BUILTIN_FILTERS.get(operator)

    def is_known_operator(self, operator: str) -> bool:
        return operator in self._custom_filters or operator in BUILTIN_FILTERS

    def operators(self) -> List[str]:
        names = list(BUILTIN_FILTERS)
        names.extend(name for name in self._custom_filters if name not in BUILTIN_FILTERS)
        return names

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def apply_filter(self, row: Any, field: str, operator: str, value: Any) -> bool:
        field_value = get_field_value(row, field)
        filter_fn = self.get_filter_fn(operator)

        if filter_fn is None:
            logger.warning(
                "Unknown filter operator: %s",
                operator,
                extra={"field": field, "operator": operator},
            )
            return True

        return bool(filter_fn(field_value, value, row))

    def apply_advanced_filter(self, row: Any, node: FilterLike) -> bool:
        if isinstance(node, Mapping):
            node = filter_from_dict(node)

        if isinstance(node, FilterGroup):
            if node.combinator == "and":
                return all(self.apply_advanced_filter(row, child) for child in node.children)
            return any(self.apply_advanced_filter(row, child) for child in node.children)

        if isinstance(node, FilterCondition):
            return self.apply_filter(row, node.field, node.operator, node.value)

        raise TypeError(f"Unsupported filter node type: {type(node).__name__}")

    def apply_filters(
        self,
        rows: Iterable[Any],
        filters: Sequence[FilterLike],
        combinator: str = "and",
    ) -> List[Any]:
        """
        Keep the rows passing the top-level list of filter trees.

        An empty list of trees keeps every row.
        """
        rows = list(rows)
        if not filters:
            return rows

        nodes = [filter_from_dict(f) if isinstance(f, Mapping) else f for f in filters]
        if combinator == "or":
            return [row for row in rows if any(self.apply_advanced_filter(row, n) for n in nodes)]
        return [row for row in rows if all(self.apply_advanced_filter(row, n) for n in nodes)]

    def matches_global(self, row: Any, term: str, fields: Optional[Sequence[str]] = None) -> bool:
        needle = term.lower()
        for field in fields if fields is not None else _own_fields(row):
            value = get_field_value(row, field)
            if is_missing(value):
                continue
            if needle in str(value).lower():
                return True
        return False

    def apply_global_filter(
        self,
        rows: Iterable[Any],
        term: Optional[str],
        fields: Optional[Sequence[str]] = None,
    ) -> List[Any]:
        """
        Case-insensitive substring search across the given fields, or every
        own field of each row when none are given. An empty term is a no-op.
        """
        rows = list(rows)
        if not term:
            return rows
        return [row for row in rows if self.matches_global(row, term, fields)]

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    @staticmethod
    def get_operators_for_type(column_type: str) -> List[str]:
        return operators_for_type(column_type)

    @staticmethod
    def validate_filter_value(operator: str, value: Any) -> FilterValidation:
        return validate_filter_value(operator, value)

    def validate_filter_tree(self, node: FilterLike) -> List[ValidationIssue]:
        if isinstance(node, Mapping):
            try:
                node = filter_from_dict(node)
            except ValueError as e:
                return [ValidationIssue(code="malformed_filter", message=str(e))]
        return validate_filter_tree(node, self.is_known_operator)

    def parse_filter_expression(self, expression: str) -> FilterNode:
        return parse_filter_expression(expression)


# Default filter engine instance
default_filter_engine = FilterEngine()
