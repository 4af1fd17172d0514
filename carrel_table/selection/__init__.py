"""
Selection layer: row, cell and range selection state driven by pointer and
keyboard events
"""

from .events import CellPosition, CellSelectionState, KeyEvent, SelectionEvent, SelectionMode, parse_cell_id
from .manager import SelectionManager

__all__ = [
    "CellPosition",
    "CellSelectionState",
    "KeyEvent",
    "SelectionEvent",
    "SelectionManager",
    "SelectionMode",
    "parse_cell_id",
]
