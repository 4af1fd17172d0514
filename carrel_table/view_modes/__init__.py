"""
View mode layer: picks table/card/list/grid/timeline presentation for a
viewport and resolves the matching layout
"""

from .manager import ViewModeManager
from .model import (
    CardViewConfig,
    GridViewConfig,
    ListViewConfig,
    ResponsiveConfig,
    TimelineViewConfig,
    ViewMode,
    ViewModeConfig,
    ViewModeItem,
)
from .presets import VIEW_MODE_PRESETS, create_view_mode_manager

__all__ = [
    "CardViewConfig",
    "GridViewConfig",
    "ListViewConfig",
    "ResponsiveConfig",
    "TimelineViewConfig",
    "VIEW_MODE_PRESETS",
    "ViewMode",
    "ViewModeConfig",
    "ViewModeItem",
    "ViewModeManager",
    "create_view_mode_manager",
]
