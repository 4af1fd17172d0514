from __future__ import annotations

from typing import Any, Optional


class CarrelTableError(Exception):
    """Base exception for all carrel_table errors"""
    pass


class ConfigError(CarrelTableError):
    """Invalid or inconsistent table.json / source definition"""
    pass


class DataSourceError(CarrelTableError):
    """
    Structured failure reported by (or on behalf of) a backend.

    :param message: human-readable description
    :param code: short machine-readable code, e.g. "http_error", "invalid_query"
    :param status_code: transport status (HTTP status for HTTP-backed sources)
    :param details: anything extra the backend returned
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, code={self.code!r}, "
            f"status_code={self.status_code!r})"
        )


class UnsupportedCapabilityError(DataSourceError):
    """An optional capability was invoked on a source that does not advertise it"""

    def __init__(self, source_id: str, capability: str) -> None:
        super().__init__(
            f"Data source '{source_id}' does not support '{capability}'",
            code="unsupported_capability",
            details={"source": source_id, "capability": capability},
        )
        self.capability = capability


class UnsupportedExportFormatError(DataSourceError):
    """Export requested in a format the serialiser cannot produce"""

    def __init__(self, export_format: str) -> None:
        super().__init__(
            f"Export format {export_format} not implemented",
            code="unsupported_export_format",
            details={"format": export_format},
        )
        self.export_format = export_format


class FilterExpressionError(CarrelTableError):
    """A textual filter expression could not be parsed"""

    def __init__(self, message: str, position: Optional[int] = None) -> None:
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)
        self.position = position
