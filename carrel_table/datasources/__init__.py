"""
Data source layer: the backend contract, the policy-carrying base class,
the built-in in-memory and HTTP backends, and the kind registry
"""

from .base import BaseDataSource, DataSource, DataSourceCapabilities
from .columns import ColumnMetadata, columns_from_row
from .http import FieldMapping, HttpAuth, HttpDataSource
from .memory import InMemoryDataSource
from .registry import DataSourceRegistry, default_registry

__all__ = [
    "BaseDataSource",
    "ColumnMetadata",
    "DataSource",
    "DataSourceCapabilities",
    "DataSourceRegistry",
    "FieldMapping",
    "HttpAuth",
    "HttpDataSource",
    "InMemoryDataSource",
    "columns_from_row",
    "default_registry",
]
