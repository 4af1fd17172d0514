from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union


class ViewMode(str, Enum):
    TABLE = "table"
    CARD = "card"
    LIST = "list"
    GRID = "grid"
    TIMELINE = "timeline"


# Ascending order; the last one defined in a config is the "top" breakpoint
BREAKPOINTS = ("sm", "md", "lg", "xl")

DEFAULT_AVAILABLE_MODES = (ViewMode.TABLE, ViewMode.CARD, ViewMode.LIST, ViewMode.GRID)

# A plain value, or {"sm": .., "md": .., "lg": .., "xl": .., "default": ..}
ResponsiveValue = Union[Any, Mapping[str, Any]]


@dataclass
class ResponsiveConfig:
    """
    Viewport thresholds (px) and the mode to use below / above them.

    - breakpoints: e.g. {"sm": 640, "md": 768, "lg": 1024, "xl": 1280}
    - modes_by_breakpoint: e.g. {"sm": ViewMode.LIST, "md": ViewMode.CARD}
    """
    breakpoints: Dict[str, int] = field(default_factory=dict)
    modes_by_breakpoint: Dict[str, ViewMode] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResponsiveConfig:
        modes = data.get("modesByBreakpoint", data.get("modes_by_breakpoint", {}))
        return cls(
            breakpoints={k: int(v) for k, v in data.get("breakpoints", {}).items() if k in BREAKPOINTS},
            modes_by_breakpoint={k: ViewMode(v) for k, v in modes.items() if k in BREAKPOINTS},
        )


@dataclass
class CardViewConfig:
    columns_per_row: ResponsiveValue = 3
    spacing: Union[int, str] = 16
    aspect_ratio: str = "16/9"
    show_header: Optional[bool] = None
    card_style: str = "default"
    enable_hover: bool = True
    enable_selection: bool = True
    title_field: Optional[str] = None
    subtitle_field: Optional[str] = None
    image_field: Optional[str] = None
    fields_to_show: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CardViewConfig:
        return cls(
            columns_per_row=data.get("columnsPerRow", 3),
            spacing=data.get("spacing", 16),
            aspect_ratio=data.get("aspectRatio", "16/9"),
            show_header=data.get("showHeader"),
            card_style=data.get("cardStyle", "default"),
            enable_hover=bool(data.get("enableHover", True)),
            enable_selection=bool(data.get("enableSelection", True)),
            title_field=data.get("titleField"),
            subtitle_field=data.get("subtitleField"),
            image_field=data.get("imageField"),
            fields_to_show=data.get("fieldsToShow"),
        )


@dataclass
class ListViewConfig:
    show_avatar: bool = False
    show_dividers: bool = True
    density: str = "normal"
    show_actions: bool = False
    actions_position: str = "right"
    primary_field: Optional[str] = None
    secondary_field: Optional[str] = None
    tertiary_field: Optional[str] = None
    meta_fields: List[str] = field(default_factory=list)

    def fields(self) -> List[str]:
        named = [self.primary_field, self.secondary_field, self.tertiary_field, *self.meta_fields]
        return [f for f in named if f]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ListViewConfig:
        return cls(
            show_avatar=bool(data.get("showAvatar", False)),
            show_dividers=bool(data.get("showDividers", True)),
            density=data.get("density", "normal"),
            show_actions=bool(data.get("showActions", False)),
            actions_position=data.get("actionsPosition", "right"),
            primary_field=data.get("primaryField"),
            secondary_field=data.get("secondaryField"),
            tertiary_field=data.get("tertiaryField"),
            meta_fields=list(data.get("metaFields", [])),
        )


@dataclass
class GridViewConfig:
    columns: ResponsiveValue = 4
    gap: Union[int, str] = 16
    aspect_ratio: str = "1/1"
    min_item_width: Union[int, str] = "200px"
    max_item_width: Union[int, str] = "1fr"
    auto_fit: bool = True
    enable_masonry: bool = False
    overlay_content: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GridViewConfig:
        return cls(
            columns=data.get("columns", 4),
            gap=data.get("gap", 16),
            aspect_ratio=data.get("aspectRatio", "1/1"),
            min_item_width=data.get("minItemWidth", "200px"),
            max_item_width=data.get("maxItemWidth", "1fr"),
            auto_fit=bool(data.get("autoFit", True)),
            enable_masonry=bool(data.get("enableMasonry", False)),
            overlay_content=data.get("overlayContent"),
        )


@dataclass
class TimelineViewConfig:
    date_field: str = "date"
    title_field: Optional[str] = None
    content_field: Optional[str] = None
    orientation: str = "vertical"
    position: str = "alternate"
    show_connector: bool = True
    marker_style: str = "dot"
    enable_collapse: bool = False

    def fields(self) -> List[str]:
        return [f for f in (self.date_field, self.title_field, self.content_field) if f]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TimelineViewConfig:
        return cls(
            date_field=data.get("dateField", "date"),
            title_field=data.get("titleField"),
            content_field=data.get("contentField"),
            orientation=data.get("orientation", "vertical"),
            position=data.get("position", "alternate"),
            show_connector=bool(data.get("showConnector", True)),
            marker_style=data.get("markerStyle", "dot"),
            enable_collapse=bool(data.get("enableCollapse", False)),
        )


@dataclass
class ViewModeConfig:
    """
    Which display modes a table offers and how each one is laid out.

    Per-mode configs left as None fall back to their defaults; a missing
    timeline config additionally means "show every column" in timeline mode.
    """
    mode: ViewMode = ViewMode.TABLE
    enabled: bool = True
    default_mode: Optional[ViewMode] = None
    available_modes: List[ViewMode] = field(default_factory=lambda: list(DEFAULT_AVAILABLE_MODES))
    responsive: Optional[ResponsiveConfig] = None
    card_config: Optional[CardViewConfig] = None
    list_config: Optional[ListViewConfig] = None
    grid_config: Optional[GridViewConfig] = None
    timeline_config: Optional[TimelineViewConfig] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ViewModeConfig:
        available = data.get("availableModes", data.get("available_modes"))
        default_mode = data.get("defaultMode", data.get("default_mode"))
        responsive = data.get("responsive")
        card = data.get("cardConfig")
        list_cfg = data.get("listConfig")
        grid = data.get("gridConfig")
        timeline = data.get("timelineConfig")

        return cls(
            mode=ViewMode(data.get("mode", "table")),
            enabled=bool(data.get("enabled", True)),
            default_mode=ViewMode(default_mode) if default_mode else None,
            available_modes=(
                [ViewMode(m) for m in available] if available is not None else list(DEFAULT_AVAILABLE_MODES)
            ),
            responsive=ResponsiveConfig.from_dict(responsive) if responsive else None,
            card_config=CardViewConfig.from_dict(card) if card else None,
            list_config=ListViewConfig.from_dict(list_cfg) if list_cfg else None,
            grid_config=GridViewConfig.from_dict(grid) if grid else None,
            timeline_config=TimelineViewConfig.from_dict(timeline) if timeline else None,
        )


# ---------------------------------------------------------------------------
# Resolved layouts (responsive values already picked for the current viewport)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CardLayout:
    columns_per_row: int
    spacing: Union[int, str]
    aspect_ratio: str
    show_header: bool
    card_style: str
    enable_hover: bool
    enable_selection: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ListLayout:
    show_avatar: bool
    show_dividers: bool
    density: str
    show_actions: bool
    actions_position: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GridLayout:
    columns: int
    gap: Union[int, str]
    aspect_ratio: str
    min_item_width: Union[int, str]
    max_item_width: Union[int, str]
    auto_fit: bool
    enable_masonry: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TimelineLayout:
    date_field: str
    orientation: str
    position: str
    show_connector: bool
    marker_style: str
    enable_collapse: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


Layout = Union[CardLayout, ListLayout, GridLayout, TimelineLayout]


@dataclass
class ViewModeItem:
    """One row prepared for a non-table renderer."""
    id: Any
    data: Any
    index: int
    selected: bool = False
    expanded: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
