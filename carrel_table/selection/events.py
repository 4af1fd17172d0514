from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class SelectionMode(str, Enum):
    """
    What a click selects, and how many of them.

    - none: nothing is selectable
    - single: at most one row
    - multi: any number of rows (ctrl/meta toggles, shift selects a range)
    - cell: individual cells (ctrl/meta toggles)
    - range: rectangular blocks of cells anchored on the last plain click
    """
    NONE = "none"
    SINGLE = "single"
    MULTI = "multi"
    CELL = "cell"
    RANGE = "range"


CELL_MODES = (SelectionMode.CELL, SelectionMode.RANGE)


@dataclass(frozen=True)
class SelectionEvent:
    """Modifier keys held during a pointer interaction."""
    shift: bool = False
    ctrl: bool = False
    meta: bool = False

    @property
    def is_toggle(self) -> bool:
        return self.ctrl or self.meta

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SelectionEvent:
        return cls(
            shift=bool(data.get("shiftKey", data.get("shift", False))),
            ctrl=bool(data.get("ctrlKey", data.get("ctrl", False))),
            meta=bool(data.get("metaKey", data.get("meta", False))),
        )


@dataclass(frozen=True)
class KeyEvent:
    """A key press as reported by the host, e.g. KeyEvent("ArrowDown", shift=True)."""
    key: str
    shift: bool = False
    ctrl: bool = False
    meta: bool = False

    @property
    def is_toggle(self) -> bool:
        return self.ctrl or self.meta

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> KeyEvent:
        return cls(
            key=str(data.get("key", "")),
            shift=bool(data.get("shiftKey", False)),
            ctrl=bool(data.get("ctrlKey", False)),
            meta=bool(data.get("metaKey", False)),
        )


@dataclass(frozen=True)
class CellPosition:
    row: int
    column: int

    def to_cell_id(self) -> str:
        return format_cell_id(self.row, self.column)


@dataclass
class CellSelectionState:
    """Snapshot of cell selection; `selected_cells` is a copy."""
    selected_cells: frozenset
    anchor_cell: Optional[str] = None
    range_end: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selectedCells": sorted(self.selected_cells),
            "anchorCell": self.anchor_cell,
            "rangeEnd": self.range_end,
        }


def format_cell_id(row: int, column: int) -> str:
    return f"{row}:{column}"


def parse_cell_id(cell_id: Any) -> Optional[Tuple[int, int]]:
    """`"3:1"` -> (3, 1); anything else -> None."""
    if not isinstance(cell_id, str):
        return None
    parts = cell_id.split(":")
    if len(parts) != 2:
        return None
    try:
        row, column = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if row < 0 or column < 0:
        return None
    return row, column
