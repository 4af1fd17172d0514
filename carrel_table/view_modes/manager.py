from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar, Union

from carrel_table.filters.engine import get_field_value
from carrel_table.selection.manager import SelectionManager

from .model import (
    BREAKPOINTS,
    CardLayout,
    CardViewConfig,
    GridLayout,
    GridViewConfig,
    Layout,
    ListLayout,
    ListViewConfig,
    ResponsiveValue,
    TimelineLayout,
    TimelineViewConfig,
    ViewMode,
    ViewModeConfig,
    ViewModeItem,
)

logger = logging.getLogger(__name__)

C = TypeVar("C")


def _column_id(column: Any) -> str:
    return column if isinstance(column, str) else column.id


class ViewModeManager:
    """
    Maps a viewport width and a row set onto a display mode and its layout.

    Purely computational: renderers ask for the current mode, the resolved
    layout, CSS-like style dicts and the columns worth showing, then draw.

    Breakpoints are checked in ascending order (sm, md, lg, xl). Each one
    matches when the width is strictly below its threshold, except the top
    breakpoint defined in the config, which matches at or above its threshold.
    """

    def __init__(self, config: Optional[ViewModeConfig] = None) -> None:
        self.config = config or ViewModeConfig()
        self.viewport_width: float = 0

        initial = self.config.default_mode or self.config.mode
        if initial not in self.config.available_modes and self.config.available_modes:
            initial = self.config.available_modes[0]
        self._current = ViewMode(initial)

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------
    @property
    def current_mode(self) -> ViewMode:
        return self._current

    def is_mode_enabled(self, mode: Union[ViewMode, str]) -> bool:
        try:
            return ViewMode(mode) in self.config.available_modes
        except ValueError:
            return False

    def get_available_modes(self) -> List[ViewMode]:
        return list(self.config.available_modes)

    def set_mode(self, mode: Union[ViewMode, str]) -> bool:
        """
        Switch to `mode` if it is available.

        :return: True if the mode changed or was already current
        """
        if not self.is_mode_enabled(mode):
            logger.debug("Ignoring unavailable view mode", extra={"mode": str(mode)})
            return False
        self._current = ViewMode(mode)
        return True

    # ------------------------------------------------------------------
    # Responsive behaviour
    # ------------------------------------------------------------------
    def _matching_breakpoints(self) -> List[str]:
        """Breakpoint names whose condition holds for the current width, ascending."""
        responsive = self.config.responsive
        if responsive is None:
            return []

        defined = [name for name in BREAKPOINTS if responsive.breakpoints.get(name) is not None]
        if not defined:
            return []

        top = defined[-1]
        matches = []
        for name in defined:
            threshold = responsive.breakpoints[name]
            if name == top:
                if self.viewport_width >= threshold:
                    matches.append(name)
            elif self.viewport_width < threshold:
                matches.append(name)
        return matches

    def update_viewport(self, width: float) -> None:
        """Record the new width and switch to the first matching breakpoint's mode."""
        self.viewport_width = width

        responsive = self.config.responsive
        if responsive is None or not responsive.modes_by_breakpoint:
            return

        for name in self._matching_breakpoints():
            mode = responsive.modes_by_breakpoint.get(name)
            if mode is not None:
                self.set_mode(mode)
                return

    def get_responsive_value(self, value: ResponsiveValue) -> Any:
        """
        Resolve a plain value or a {sm, md, lg, xl, default} mapping for the
        current width.

        Falls back to the `default` key, then to the value of the largest
        breakpoint given in the mapping.
        """
        if not isinstance(value, Mapping):
            return value

        for name in self._matching_breakpoints():
            if value.get(name) is not None:
                return value[name]

        if value.get("default") is not None:
            return value["default"]

        for name in reversed(BREAKPOINTS):
            if value.get(name) is not None:
                return value[name]
        return None

    # ------------------------------------------------------------------
    # Layouts
    # ------------------------------------------------------------------
    def get_card_layout(self) -> CardLayout:
        config = self.config.card_config or CardViewConfig()
        return CardLayout(
            columns_per_row=self.get_responsive_value(config.columns_per_row),
            spacing=config.spacing,
            aspect_ratio=config.aspect_ratio,
            show_header=True if config.show_header is None else config.show_header,
            card_style=config.card_style,
            enable_hover=config.enable_hover,
            enable_selection=config.enable_selection,
        )

    def get_list_layout(self) -> ListLayout:
        config = self.config.list_config or ListViewConfig()
        return ListLayout(
            show_avatar=config.show_avatar,
            show_dividers=config.show_dividers,
            density=config.density,
            show_actions=config.show_actions,
            actions_position=config.actions_position,
        )

    def get_grid_layout(self) -> GridLayout:
        config = self.config.grid_config or GridViewConfig()
        return GridLayout(
            columns=self.get_responsive_value(config.columns),
            gap=config.gap,
            aspect_ratio=config.aspect_ratio,
            min_item_width=config.min_item_width,
            max_item_width=config.max_item_width,
            auto_fit=config.auto_fit,
            enable_masonry=config.enable_masonry,
        )

    def get_timeline_layout(self) -> TimelineLayout:
        config = self.config.timeline_config or TimelineViewConfig()
        return TimelineLayout(
            date_field=config.date_field,
            orientation=config.orientation,
            position=config.position,
            show_connector=config.show_connector,
            marker_style=config.marker_style,
            enable_collapse=config.enable_collapse,
        )

    def get_layout_config(self) -> Optional[Layout]:
        """Layout for the current mode; None in table mode."""
        builders = {
            ViewMode.CARD: self.get_card_layout,
            ViewMode.LIST: self.get_list_layout,
            ViewMode.GRID: self.get_grid_layout,
            ViewMode.TIMELINE: self.get_timeline_layout,
        }
        builder = builders.get(self._current)
        return builder() if builder else None

    def get_grid_template(self) -> str:
        if self._current != ViewMode.GRID:
            return ""

        layout = self.get_grid_layout()
        if layout.auto_fit:
            return f"repeat(auto-fit, minmax({layout.min_item_width}, {layout.max_item_width}))"
        return f"repeat({layout.columns}, 1fr)"

    def get_container_styles(self) -> Dict[str, Any]:
        styles: Dict[str, Any] = {"position": "relative"}

        if self._current == ViewMode.CARD:
            card = self.get_card_layout()
            styles.update(
                display="grid",
                gridTemplateColumns=f"repeat({card.columns_per_row}, 1fr)",
                gap=card.spacing,
            )
        elif self._current == ViewMode.GRID:
            styles.update(
                display="grid",
                gridTemplateColumns=self.get_grid_template(),
                gap=self.get_grid_layout().gap,
            )
        elif self._current == ViewMode.LIST:
            styles.update(display="flex", flexDirection="column")
        elif self._current == ViewMode.TIMELINE:
            vertical = self.get_timeline_layout().orientation == "vertical"
            styles.update(display="flex", flexDirection="column" if vertical else "row")

        return styles

    def get_item_styles(self, index: int) -> Dict[str, Any]:
        if self._current == ViewMode.CARD:
            return {"aspectRatio": self.get_card_layout().aspect_ratio}
        if self._current == ViewMode.GRID:
            return {"aspectRatio": self.get_grid_layout().aspect_ratio}
        if self._current == ViewMode.TIMELINE and self.get_timeline_layout().position == "alternate":
            return {"alignSelf": "flex-start" if index % 2 == 0 else "flex-end"}
        return {}

    def should_show_headers(self) -> bool:
        if self._current == ViewMode.TABLE:
            return True
        if self._current == ViewMode.CARD:
            card = self.config.card_config
            return bool(card and card.show_header)
        return False

    # ------------------------------------------------------------------
    # Columns and items
    # ------------------------------------------------------------------
    def get_visible_columns(self, columns: Sequence[C]) -> List[C]:
        """
        Columns worth rendering in the current mode. Accepts column ids or
        objects with an `id` attribute (e.g. ColumnMetadata).

        - card: `fields_to_show`, else everything
        - list: primary/secondary/tertiary/meta fields, else everything
        - grid: `overlay_content`, else the first three columns
        - timeline: date/title/content fields when a timeline config is set
        """
        columns = list(columns)
        wanted: Optional[List[str]] = None

        if self._current == ViewMode.CARD:
            card = self.config.card_config
            wanted = card.fields_to_show if card else None
        elif self._current == ViewMode.LIST:
            fields = self.config.list_config.fields() if self.config.list_config else []
            wanted = fields or None
        elif self._current == ViewMode.GRID:
            grid = self.config.grid_config
            if grid is None or grid.overlay_content is None:
                return columns[:3]
            wanted = grid.overlay_content
        elif self._current == ViewMode.TIMELINE and self.config.timeline_config is not None:
            wanted = self.config.timeline_config.fields()

        if wanted is None:
            return columns
        return [c for c in columns if _column_id(c) in wanted]

    def transform_to_view_items(
        self,
        rows: Sequence[Any],
        *,
        id_field: str = "id",
        selection: Optional[SelectionManager] = None,
        columns: Optional[Sequence[Any]] = None,
        expanded_ids: Optional[Sequence[Any]] = None,
    ) -> List[ViewModeItem]:
        """
        Wrap rows for card/list/grid/timeline renderers.

        Selection flags come from `selection`; `metadata` holds the values of
        the visible columns (all own fields when `columns` is not given).
        Rows without an id fall back to their index as a string.
        """
        column_ids = [_column_id(c) for c in self.get_visible_columns(columns)] if columns is not None else None
        expanded = set(expanded_ids or ())

        items: List[ViewModeItem] = []
        for index, row in enumerate(rows):
            row_id = get_field_value(row, id_field)
            if row_id is None:
                row_id = str(index)

            if column_ids is None:
                metadata = dict(row) if isinstance(row, Mapping) else {}
            else:
                metadata = {cid: get_field_value(row, cid) for cid in column_ids}

            items.append(
                ViewModeItem(
                    id=row_id,
                    data=row,
                    index=index,
                    selected=selection.is_row_selected(row_id) if selection is not None else False,
                    expanded=row_id in expanded,
                    metadata=metadata,
                )
            )
        return items
