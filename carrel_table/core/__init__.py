"""
Core layer: query/response value types, response cache, retry combinator,
export serialisation and the exception hierarchy
"""

from .cache import CacheEntry, CacheKey, QueryCache, canonical_json
from .exceptions import (
    CarrelTableError,
    ConfigError,
    DataSourceError,
    FilterExpressionError,
    UnsupportedCapabilityError,
    UnsupportedExportFormatError,
)
from .export import ExportResult, serialize_rows
from .query import Aggregation, ColumnFilter, DataSourceQuery, DataSourceResponse, Pagination, SortSpec
from .retry import RetryPolicy, with_retry

__all__ = [
    "Aggregation",
    "CacheEntry",
    "CacheKey",
    "CarrelTableError",
    "ColumnFilter",
    "ConfigError",
    "DataSourceError",
    "DataSourceQuery",
    "DataSourceResponse",
    "ExportResult",
    "FilterExpressionError",
    "Pagination",
    "QueryCache",
    "RetryPolicy",
    "SortSpec",
    "UnsupportedCapabilityError",
    "UnsupportedExportFormatError",
    "canonical_json",
    "serialize_rows",
    "with_retry",
]
