from __future__ import annotations

from dataclasses import dataclass

import pytest

from carrel_table.selection.manager import SelectionManager
from carrel_table.view_modes.model import (
    CardViewConfig,
    GridViewConfig,
    ListViewConfig,
    TimelineViewConfig,
    ViewMode,
    ViewModeConfig,
)
from carrel_table.view_modes.manager import ViewModeManager
from carrel_table.view_modes.presets import VIEW_MODE_PRESETS, create_view_mode_manager

COLUMNS = ["id", "name", "email", "city", "date"]


@dataclass
class Column:
    id: str


def _manager(mode, **config):
    return ViewModeManager(ViewModeConfig(mode=mode, available_modes=list(ViewMode), **config))


def test_initial_mode_prefers_default_mode_then_mode():
    assert ViewModeManager().current_mode == ViewMode.TABLE
    assert ViewModeManager(ViewModeConfig(default_mode=ViewMode.LIST)).current_mode == ViewMode.LIST
    assert create_view_mode_manager("card_only").current_mode == ViewMode.CARD


def test_initial_mode_falls_back_to_first_available():
    manager = ViewModeManager(ViewModeConfig(mode=ViewMode.TABLE, available_modes=[ViewMode.GRID, ViewMode.LIST]))
    assert manager.current_mode == ViewMode.GRID


def test_set_mode_ignores_unavailable_modes():
    manager = create_view_mode_manager("default")

    assert manager.set_mode("card")
    assert not manager.set_mode(ViewMode.TIMELINE)
    assert not manager.set_mode("carousel")
    assert manager.current_mode == ViewMode.CARD
    assert manager.get_available_modes() == [ViewMode.TABLE, ViewMode.CARD, ViewMode.LIST, ViewMode.GRID]


@pytest.mark.parametrize(
    "width, expected",
    [
        (500, ViewMode.LIST),
        (700, ViewMode.CARD),
        (1000, ViewMode.TABLE),
        (1100, ViewMode.CARD),
        (1280, ViewMode.CARD),
    ],
)
def test_responsive_preset_switches_mode_by_width(width, expected):
    manager = create_view_mode_manager("responsive")
    manager.set_mode("card")
    manager.update_viewport(width)
    assert manager.current_mode == expected


def test_width_between_thresholds_without_a_mapping_keeps_mode():
    manager = create_view_mode_manager(
        {
            "availableModes": ["table", "list"],
            "responsive": {"breakpoints": {"sm": 640, "lg": 1024}, "modesByBreakpoint": {"sm": "list"}},
        }
    )
    manager.update_viewport(800)
    assert manager.current_mode == ViewMode.TABLE
    manager.update_viewport(320)
    assert manager.current_mode == ViewMode.LIST


def test_responsive_values():
    manager = create_view_mode_manager("responsive")
    columns = {"sm": 1, "md": 2, "lg": 3}

    manager.update_viewport(600)
    assert manager.get_responsive_value(columns) == 1
    manager.update_viewport(1024)
    assert manager.get_responsive_value(columns) == 3
    manager.update_viewport(1300)
    assert manager.get_responsive_value(columns) == 3
    assert manager.get_responsive_value({"sm": 1, "default": 7}) == 7
    assert manager.get_responsive_value(5) == 5


def test_responsive_value_without_breakpoints_uses_largest_given():
    manager = ViewModeManager()
    assert manager.get_responsive_value({"sm": 1, "md": 2}) == 2


def test_gallery_grid_layout_and_template():
    manager = create_view_mode_manager("gallery")

    layout = manager.get_layout_config()
    assert layout.columns == 6
    assert layout.aspect_ratio == "1/1"
    assert manager.get_grid_template() == "repeat(auto-fit, minmax(200px, 1fr))"


def test_fixed_grid_template_and_styles():
    manager = _manager(ViewMode.GRID, grid_config=GridViewConfig(columns=5, gap=8, auto_fit=False))

    assert manager.get_grid_template() == "repeat(5, 1fr)"
    assert manager.get_container_styles() == {
        "position": "relative",
        "display": "grid",
        "gridTemplateColumns": "repeat(5, 1fr)",
        "gap": 8,
    }
    assert manager.get_item_styles(0) == {"aspectRatio": "1/1"}
    manager.set_mode("table")
    assert manager.get_grid_template() == ""


def test_card_styles_and_headers():
    manager = _manager(ViewMode.CARD, card_config=CardViewConfig(columns_per_row=2, spacing=12, show_header=True))

    assert manager.get_container_styles()["gridTemplateColumns"] == "repeat(2, 1fr)"
    assert manager.get_item_styles(3) == {"aspectRatio": "16/9"}
    assert manager.should_show_headers()
    assert manager.get_card_layout().show_header is True

    assert not _manager(ViewMode.CARD).should_show_headers()
    assert _manager(ViewMode.CARD).get_card_layout().show_header is True
    assert _manager(ViewMode.TABLE).should_show_headers()
    assert not _manager(ViewMode.LIST).should_show_headers()


def test_list_and_timeline_styles():
    assert _manager(ViewMode.LIST).get_container_styles() == {
        "position": "relative",
        "display": "flex",
        "flexDirection": "column",
    }

    horizontal = _manager(ViewMode.TIMELINE, timeline_config=TimelineViewConfig(orientation="horizontal"))
    assert horizontal.get_container_styles()["flexDirection"] == "row"

    alternate = _manager(ViewMode.TIMELINE)
    assert alternate.get_item_styles(0) == {"alignSelf": "flex-start"}
    assert alternate.get_item_styles(1) == {"alignSelf": "flex-end"}
    assert _manager(ViewMode.LIST).get_item_styles(0) == {}
    assert _manager(ViewMode.TABLE).get_layout_config() is None


def test_visible_columns_per_mode():
    assert _manager(ViewMode.TABLE).get_visible_columns(COLUMNS) == COLUMNS
    assert _manager(ViewMode.CARD).get_visible_columns(COLUMNS) == COLUMNS
    assert _manager(ViewMode.CARD, card_config=CardViewConfig(fields_to_show=["email", "id"])).get_visible_columns(
        COLUMNS
    ) == ["id", "email"]
    assert _manager(
        ViewMode.LIST, list_config=ListViewConfig(primary_field="name", meta_fields=["city"])
    ).get_visible_columns(COLUMNS) == ["name", "city"]
    assert _manager(ViewMode.GRID).get_visible_columns(COLUMNS) == ["id", "name", "email"]
    assert _manager(ViewMode.GRID, grid_config=GridViewConfig(overlay_content=["city"])).get_visible_columns(
        COLUMNS
    ) == ["city"]
    assert _manager(ViewMode.TIMELINE).get_visible_columns(COLUMNS) == COLUMNS
    assert _manager(
        ViewMode.TIMELINE, timeline_config=TimelineViewConfig(title_field="name")
    ).get_visible_columns(COLUMNS) == ["name", "date"]


def test_visible_columns_accepts_column_objects():
    columns = [Column(c) for c in COLUMNS]
    visible = _manager(ViewMode.GRID).get_visible_columns(columns)
    assert [c.id for c in visible] == ["id", "name", "email"]


def test_transform_to_view_items():
    rows = [{"id": "a", "name": "Alice", "city": "Oslo"}, {"name": "No id", "city": "Bergen"}]
    selection = SelectionManager()
    selection.select_row("a")

    manager = _manager(ViewMode.GRID, grid_config=GridViewConfig(overlay_content=["name"]))
    items = manager.transform_to_view_items(
        rows, selection=selection, columns=["id", "name", "city"], expanded_ids=["1"]
    )

    assert [i.id for i in items] == ["a", "1"]
    assert [i.selected for i in items] == [True, False]
    assert [i.expanded for i in items] == [False, True]
    assert items[0].metadata == {"name": "Alice"}
    assert items[1].index == 1

    plain = manager.transform_to_view_items(rows)
    assert plain[0].metadata == rows[0]
    assert plain[0].selected is False


def test_from_dict_reads_camel_case():
    config = ViewModeConfig.from_dict(
        {
            "mode": "list",
            "defaultMode": "card",
            "availableModes": ["card", "list"],
            "cardConfig": {"columnsPerRow": {"sm": 1, "lg": 4}, "fieldsToShow": ["name"]},
            "listConfig": {"density": "compact", "primaryField": "name"},
        }
    )

    assert config.default_mode == ViewMode.CARD
    assert config.card_config.columns_per_row == {"sm": 1, "lg": 4}
    assert config.list_config.density == "compact"
    assert config.grid_config is None
    assert ViewModeManager(config).current_mode == ViewMode.CARD


def test_presets_and_unknown_preset():
    assert set(VIEW_MODE_PRESETS) == {"default", "card_only", "responsive", "gallery"}
    with pytest.raises(KeyError, match="Unknown view mode preset"):
        create_view_mode_manager("kanban")
    assert create_view_mode_manager(None).current_mode == ViewMode.TABLE
