from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from .manager import ViewModeManager
from .model import ViewModeConfig

VIEW_MODE_PRESETS: Dict[str, Dict[str, Any]] = {
    "default": {
        "mode": "table",
        "enabled": True,
        "availableModes": ["table", "card", "list", "grid"],
    },
    "card_only": {
        "mode": "card",
        "enabled": True,
        "availableModes": ["card"],
        "cardConfig": {
            "columnsPerRow": 3,
            "cardStyle": "default",
            "enableHover": True,
            "enableSelection": True,
        },
    },
    "responsive": {
        "mode": "table",
        "enabled": True,
        "availableModes": ["table", "card", "list"],
        "responsive": {
            "breakpoints": {"sm": 640, "md": 768, "lg": 1024, "xl": 1280},
            "modesByBreakpoint": {"sm": "list", "md": "card", "lg": "table"},
        },
    },
    "gallery": {
        "mode": "grid",
        "enabled": True,
        "availableModes": ["grid"],
        "gridConfig": {
            "columns": {"sm": 2, "md": 3, "lg": 4, "xl": 6},
            "aspectRatio": "1/1",
            "autoFit": True,
            "enableMasonry": False,
        },
    },
}


def create_view_mode_manager(
    config: Union[ViewModeConfig, Mapping[str, Any], str, None] = None,
) -> ViewModeManager:
    """
    Build a ViewModeManager from a config object, a camelCase dict (the shape
    used in VIEW_MODE_PRESETS) or a preset name.

    Raises:
        KeyError: if `config` names an unknown preset
    """
    resolved: Optional[ViewModeConfig]
    if isinstance(config, str):
        try:
            resolved = ViewModeConfig.from_dict(VIEW_MODE_PRESETS[config])
        except KeyError:
            raise KeyError(f"Unknown view mode preset '{config}'")
    elif isinstance(config, Mapping):
        resolved = ViewModeConfig.from_dict(config)
    else:
        resolved = config
    return ViewModeManager(resolved)
