"""
Config package for carrel_table.

Responsible for:
- config models (TableConfig, DataSourceConfig, etc.)
- config I/O helpers live in carrel_table.config.loader (load_table_config / load_data_sources)
"""

from .model import (
    CacheConfig,
    DataSourceConfig,
    DataSourceDefinition,
    PaginationConfig,
    RequestConfig,
    RetryConfig,
    TableConfig,
)

__all__ = [
    "CacheConfig",
    "DataSourceConfig",
    "DataSourceDefinition",
    "PaginationConfig",
    "RequestConfig",
    "RetryConfig",
    "TableConfig",
]
