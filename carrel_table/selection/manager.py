from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence, Union

from .events import (
    CELL_MODES,
    CellPosition,
    CellSelectionState,
    KeyEvent,
    SelectionEvent,
    SelectionMode,
    parse_cell_id,
)

logger = logging.getLogger(__name__)

# navigator(direction, current_position, extend_selection)
Navigator = Callable[[str, CellPosition, bool], Any]
ChangeListener = Callable[[Dict[str, Any]], Any]

NAVIGATION_KEYS = {
    "ArrowUp": "up",
    "ArrowDown": "down",
    "ArrowLeft": "left",
    "ArrowRight": "right",
    "Home": "home",
    "End": "end",
    "PageUp": "pageUp",
    "PageDown": "pageDown",
}


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class SelectionManager:
    """
    Row, cell and range selection for one table view.

    Construct once per view and feed it pointer and keyboard events. State:

    - selected rows and selected cells, both in insertion order
    - last_selected_row: anchor for shift-click row ranges (multi mode)
    - anchor_cell / last_selected_cell: corners of a range-mode block

    Mode invariants:

    - none: nothing is ever selected
    - single: at most one selected row
    - changing mode clears everything

    Shift ranges are computed from the ordered ids passed in with the event
    (`all_ids` / `grid`), i.e. the order the user saw at click time.

    Not thread-safe; hosts serialise access.
    """

    def __init__(
        self,
        mode: Union[SelectionMode, str] = SelectionMode.MULTI,
        navigator: Optional[Navigator] = None,
    ) -> None:
        self._mode = SelectionMode(mode)
        self._rows: Dict[Hashable, None] = {}
        self._cells: Dict[str, None] = {}
        self.last_selected_row: Optional[Hashable] = None
        self.last_selected_cell: Optional[str] = None
        self.anchor_cell: Optional[str] = None
        self.navigator = navigator
        self._listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------
    @property
    def mode(self) -> SelectionMode:
        return self._mode

    def set_mode(self, mode: Union[SelectionMode, str]) -> None:
        """
        Switch mode. All row and cell selection is dropped first.

        Raises:
            ValueError: if `mode` is not a known selection mode
        """
        new_mode = SelectionMode(mode)
        self._clear()
        self._mode = new_mode
        self._notify()

    # ------------------------------------------------------------------
    # Change listeners
    # ------------------------------------------------------------------
    def on_change(self, callback: ChangeListener) -> Callable[[], None]:
        """
        Register `callback(summary)`, called after every mutation.

        :return: function removing the listener
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        summary = self.get_selection_summary()
        for callback in list(self._listeners):
            try:
                callback(summary)
            except Exception:
                logger.exception("Selection listener failed")

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------
    def select_row(
        self,
        row_id: Hashable,
        event: Optional[SelectionEvent] = None,
        all_ids: Optional[Sequence[Hashable]] = None,
    ) -> None:
        """
        Apply a click on a row.

        - single: the clicked row replaces the selection, modifiers ignored
        - multi + shift (with an anchor and `all_ids`): add every id between the
          anchor and the clicked row, inclusive; the anchor does not move
        - multi + ctrl/meta: toggle the clicked row
        - multi, plain click: the clicked row replaces the selection
        - none / cell / range: ignored
        """
        event = event or SelectionEvent()

        if self._mode == SelectionMode.SINGLE:
            self._rows = {row_id: None}
            self.last_selected_row = row_id
        elif self._mode == SelectionMode.MULTI:
            if event.shift and self.last_selected_row is not None and all_ids is not None:
                self._select_row_range(self.last_selected_row, row_id, all_ids)
            elif event.is_toggle:
                self._toggle(row_id)
                self.last_selected_row = row_id
            else:
                self._rows = {row_id: None}
                self.last_selected_row = row_id
        else:
            return

        self._notify()

    def _select_row_range(self, start_id: Hashable, end_id: Hashable, all_ids: Sequence[Hashable]) -> None:
        ids = list(all_ids)
        try:
            start = ids.index(start_id)
            end = ids.index(end_id)
        except ValueError:
            logger.debug(
                "Row range endpoint not in supplied ids",
                extra={"start": repr(start_id), "end": repr(end_id)},
            )
            return

        for row_id in ids[min(start, end): max(start, end) + 1]:
            self._rows[row_id] = None

    def _toggle(self, row_id: Hashable) -> None:
        if row_id in self._rows:
            del self._rows[row_id]
        else:
            self._rows[row_id] = None

    def toggle_row(self, row_id: Hashable) -> None:
        if self._mode == SelectionMode.NONE:
            return

        if row_id not in self._rows and self._mode == SelectionMode.SINGLE:
            self._rows.clear()
        self._toggle(row_id)
        self.last_selected_row = row_id
        self._notify()

    def deselect_row(self, row_id: Hashable) -> None:
        if row_id in self._rows:
            del self._rows[row_id]
            self._notify()

    def select_all(self, row_ids: Sequence[Hashable]) -> None:
        if self._mode in (SelectionMode.NONE, SelectionMode.SINGLE):
            return
        self._rows = dict.fromkeys(row_ids)
        self._notify()

    def clear_rows(self) -> None:
        self._rows.clear()
        self.last_selected_row = None
        self._notify()

    def is_row_selected(self, row_id: Hashable) -> bool:
        return row_id in self._rows

    def is_all_selected(self, row_ids: Sequence[Hashable]) -> bool:
        return bool(row_ids) and all(row_id in self._rows for row_id in row_ids)

    def get_selected_rows(self) -> List[Hashable]:
        return list(self._rows)

    def get_selected_row_count(self) -> int:
        return len(self._rows)

    @property
    def selection_count(self) -> int:
        return len(self._rows) + len(self._cells)

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------
    def select_cell(
        self,
        cell_id: str,
        event: Optional[SelectionEvent] = None,
        grid: Optional[Sequence[Sequence[Optional[str]]]] = None,
    ) -> None:
        """
        Apply a click on a cell ("row:col").

        - cell + ctrl/meta: toggle the clicked cell
        - cell, plain click: the clicked cell replaces the selection
        - range + shift (with an anchor and a grid): replace the selection with
          the rectangle spanned by the anchor and the clicked cell
        - range, otherwise: the clicked cell replaces the selection and becomes
          the anchor
        - other modes: ignored
        """
        if self._mode not in CELL_MODES:
            return

        if parse_cell_id(cell_id) is None:
            logger.warning("Ignoring malformed cell id", extra={"cell_id": repr(cell_id)})
            return

        event = event or SelectionEvent()

        if self._mode == SelectionMode.CELL:
            if event.is_toggle:
                if cell_id in self._cells:
                    del self._cells[cell_id]
                else:
                    self._cells[cell_id] = None
            else:
                self._cells = {cell_id: None}
            self.last_selected_cell = cell_id
        elif event.shift and self.anchor_cell is not None and grid is not None:
            self._select_cell_range(self.anchor_cell, cell_id, grid)
            self.last_selected_cell = cell_id
        else:
            self._cells = {cell_id: None}
            self.anchor_cell = cell_id
            self.last_selected_cell = cell_id

        self._notify()

    def _select_cell_range(self, start_id: str, end_id: str, grid: Sequence[Sequence[Optional[str]]]) -> None:
        start = parse_cell_id(start_id)
        end = parse_cell_id(end_id)
        if start is None or end is None:
            return

        min_row, max_row = sorted((start[0], end[0]))
        min_col, max_col = sorted((start[1], end[1]))

        cells: Dict[str, None] = {}
        for row in range(min_row, min(max_row, len(grid) - 1) + 1):
            row_cells = grid[row]
            for col in range(min_col, min(max_col, len(row_cells) - 1) + 1):
                if row_cells[col]:
                    cells[row_cells[col]] = None
        self._cells = cells

    def select_all_cells(self, grid: Sequence[Sequence[Optional[str]]]) -> None:
        if self._mode not in CELL_MODES:
            return
        self._cells = {cell_id: None for row in grid for cell_id in row if cell_id}
        self._notify()

    def clear_cells(self) -> None:
        self._clear_cells()
        self._notify()

    def _clear_cells(self) -> None:
        self._cells.clear()
        self.last_selected_cell = None
        self.anchor_cell = None

    def is_cell_selected(self, cell_id: str) -> bool:
        return cell_id in self._cells

    def get_selected_cells(self) -> List[str]:
        return list(self._cells)

    def get_cell_selection_state(self) -> CellSelectionState:
        return CellSelectionState(
            selected_cells=frozenset(self._cells),
            anchor_cell=self.anchor_cell,
            range_end=self.last_selected_cell,
        )

    # ------------------------------------------------------------------
    # Everything
    # ------------------------------------------------------------------
    def _clear(self) -> None:
        self._rows.clear()
        self.last_selected_row = None
        self._clear_cells()

    def clear_all(self) -> None:
        self._clear()
        self._notify()

    def handle_keyboard(
        self,
        event: KeyEvent,
        position: CellPosition,
        all_ids: Optional[Sequence[Hashable]] = None,
        grid: Optional[Sequence[Sequence[Optional[str]]]] = None,
    ) -> bool:
        """
        React to a key press at `position`.

        - arrows, Home/End, PageUp/PageDown: passed to `navigator` (shift extends)
        - Ctrl/Cmd+A: select all rows (multi) or all cells (cell/range)
        - Escape: clear everything

        :return: True when the key was handled
        """
        direction = NAVIGATION_KEYS.get(event.key)
        if direction is not None:
            if self.navigator is None:
                return False
            self.navigator(direction, position, event.shift)
            return True

        if event.key in ("a", "A") and event.is_toggle:
            if self._mode == SelectionMode.MULTI and all_ids is not None:
                self.select_all(all_ids)
                return True
            if self._mode in CELL_MODES and grid is not None:
                self.select_all_cells(grid)
                return True
            return False

        if event.key == "Escape":
            self.clear_all()
            return True

        return False

    def get_selection_summary(self) -> Dict[str, Any]:
        return {
            "mode": self._mode.value,
            "rowCount": len(self._rows),
            "cellCount": len(self._cells),
            "hasSelection": bool(self._rows or self._cells),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self._mode.value,
            "selectedRows": list(self._rows),
            "selectedCells": list(self._cells),
            "lastSelectedRow": self.last_selected_row,
            "lastSelectedCell": self.last_selected_cell,
            "anchorCell": self.anchor_cell,
        }

    def serialize(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def deserialize(self, snapshot: Union[str, bytes, Mapping[str, Any]]) -> bool:
        """
        Restore state from `serialize()` output (or the equivalent dict).

        Missing fields take their defaults (mode 'multi', nothing selected).
        A snapshot that cannot be read resets the manager to that default
        state; the error is logged, never raised.

        :return: True if the snapshot was applied
        """
        try:
            data = json.loads(snapshot) if isinstance(snapshot, (str, bytes)) else snapshot
            if not isinstance(data, Mapping):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")

            rows = data.get("selectedRows") or []
            cells = data.get("selectedCells") or []
            if not isinstance(rows, list) or not isinstance(cells, list):
                raise ValueError("selectedRows and selectedCells must be lists")

            mode_raw = data.get("mode") or SelectionMode.MULTI.value
            try:
                mode = SelectionMode(mode_raw)
            except ValueError:
                logger.warning("Unknown selection mode in snapshot", extra={"mode": repr(mode_raw)})
                mode = SelectionMode.MULTI

            new_rows = dict.fromkeys(rows)
            new_cells = dict.fromkeys(str(c) for c in cells)
            last_row = data.get("lastSelectedRow")
            hash(last_row)
        except (TypeError, ValueError, RecursionError):
            logger.exception("Failed to deserialize selection state; restoring defaults")
            self._mode = SelectionMode.MULTI
            self._clear()
            self._notify()
            return False

        self._mode = mode
        self._rows = new_rows
        self._cells = new_cells
        self.last_selected_row = last_row
        self.last_selected_cell = _optional_str(data.get("lastSelectedCell"))
        self.anchor_cell = _optional_str(data.get("anchorCell"))
        self._enforce_mode_invariants()
        self._notify()
        return True

    def _enforce_mode_invariants(self) -> None:
        if self._mode == SelectionMode.NONE:
            self._clear()
        elif self._mode == SelectionMode.SINGLE and len(self._rows) > 1:
            keep = self.last_selected_row if self.last_selected_row in self._rows else next(iter(self._rows))
            self._rows = {keep: None}

    def __repr__(self) -> str:
        return (
            f"SelectionManager(mode={self._mode.value!r}, rows={len(self._rows)}, "
            f"cells={len(self._cells)})"
        )
