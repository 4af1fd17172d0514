"""
Top-level package for the carrel data-table engine.

This package exposes the backend-agnostic table engine (data sources,
filtering, selection and view modes). Most code should import from
submodules such as:
    carrel_table.core
    carrel_table.datasources
    carrel_table.filters
    carrel_table.selection
    carrel_table.view_modes
"""

__all__: list[str] = []
