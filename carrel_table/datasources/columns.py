from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from carrel_table.filters.validation import operators_for_type

COLUMN_TYPES = ("string", "number", "boolean", "date", "datetime", "array", "json")


@dataclass
class ColumnMetadata:
    """
    Describes one column a data source can serve.

    Used by hosts to build column pickers and filter menus without hardcoding
    the schema.
    """
    id: str
    label: str
    type: str = "string"
    description: Optional[str] = None
    sortable: bool = True
    filterable: bool = True
    exportable: bool = True
    filter_operators: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.type not in COLUMN_TYPES:
            raise ValueError(f"Unknown column type '{self.type}' for column '{self.id}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "description": self.description,
            "sortable": self.sortable,
            "filterable": self.filterable,
            "exportable": self.exportable,
            "filterOperators": list(self.filter_operators),
        }


def infer_column_type(value: Any) -> str:
    if value is None:
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, dt.datetime):
        return "datetime"
    if isinstance(value, dt.date):
        return "date"
    if isinstance(value, (list, tuple, set)):
        return "array"
    if isinstance(value, Mapping):
        return "json"
    return "string"


def humanize_label(key: str) -> str:
    """`firstName` -> `First Name`, `first_name` -> `First name`"""
    spaced = re.sub(r"([A-Z])", r" \1", key).replace("_", " ")
    spaced = " ".join(spaced.split())
    return spaced[:1].upper() + spaced[1:]


def columns_from_row(row: Mapping[str, Any]) -> List[ColumnMetadata]:
    """Column metadata inferred from the keys and value types of a sample row."""
    columns: List[ColumnMetadata] = []
    for key, value in row.items():
        column_type = infer_column_type(value)
        columns.append(
            ColumnMetadata(
                id=str(key),
                label=humanize_label(str(key)),
                type=column_type,
                filter_operators=operators_for_type(column_type),
            )
        )
    return columns
