"""
Client-side filtering: built-in operators, filter trees and the engine that
evaluates them over in-memory rows.
"""

from .engine import FilterEngine, default_filter_engine, get_field_value
from .expression import parse_filter_expression
from .model import FilterCondition, FilterGroup, FilterNode, and_, filter_from_dict, or_
from .operators import BUILTIN_FILTERS, FilterOperator
from .validation import FilterValidation, ValidationIssue, operators_for_type, validate_filter_value

__all__ = [
    "BUILTIN_FILTERS",
    "FilterCondition",
    "FilterEngine",
    "FilterGroup",
    "FilterNode",
    "FilterOperator",
    "FilterValidation",
    "ValidationIssue",
    "and_",
    "default_filter_engine",
    "filter_from_dict",
    "get_field_value",
    "operators_for_type",
    "or_",
    "parse_filter_expression",
    "validate_filter_value",
]
