import pytest

from scaffold_config import (
    config_from_csv, config_to_csv, default_config, nearest_catalog_length,
    normalize_config, selection_from_config, tool_from_config,
)
from scaffold_logic import FIXED_VERTICAL, FREEFORM, DrawingTool


def test_normalize_clamps_out_of_range_values():
    cfg = normalize_config({"zoom": 10, "tool_size": 50, "bay_height_mm": 1000})
    assert cfg["zoom"] == 5.0
    assert cfg["tool_size"] == 20
    assert cfg["bay_height_mm"] == 902
    cfg = normalize_config({"zoom": 0, "tool_size": 0, "bay_height_mm": 10})
    assert cfg["zoom"] == pytest.approx(0.1)
    assert cfg["tool_size"] == 1
    assert cfg["bay_height_mm"] == 293


def test_normalize_falls_back_on_unknown_choices():
    cfg = normalize_config({"tool_type": "spray", "selected_component": "crane", "snap_to_endpoints": "yes"})
    assert cfg["tool_type"] == "pen"
    assert cfg["selected_component"] == ""
    assert cfg["snap_to_endpoints"] is True


def test_nearest_catalog_length():
    assert nearest_catalog_length(1500) == 1512
    assert nearest_catalog_length("1207") == 1207
    assert nearest_catalog_length(99999) == 1817
    assert nearest_catalog_length("wide") == 902


def test_tool_and_selection_from_config():
    cfg = normalize_config({"tool_type": "scaffold-mode", "right_angle_mode": True,
                            "selected_component": "v-beam", "bay_height_mm": 1207})
    tool = tool_from_config(cfg)
    assert tool == DrawingTool(type="scaffold-mode", size=2.0, color="#2563eb", right_angle_mode=True)
    sel = selection_from_config(cfg)
    assert sel.kind == FIXED_VERTICAL
    assert sel.length_mm == 1207
    assert selection_from_config(normalize_config({})).kind == FREEFORM


def test_config_csv_round_trip():
    cfg = normalize_config({"layout_name": "North façade", "zoom": 1.25, "grid_visible": False,
                            "tool_color": "#ff0000", "bay_height_mm": 598})
    text = config_to_csv(cfg)
    assert text.splitlines()[0].startswith("bay_height_mm,")
    assert config_from_csv(text) == cfg


def test_config_csv_keeps_non_json_values_as_text():
    cfg = config_from_csv("layout_name,Tower A\nzoom,2\n")
    assert cfg["layout_name"] == "Tower A"
    assert cfg["zoom"] == 2.0
    assert cfg["tool_type"] == default_config()["tool_type"]


def test_config_csv_without_rows_is_rejected():
    with pytest.raises(ValueError):
        config_from_csv("")
    with pytest.raises(ValueError):
        config_from_csv("just-a-key\n")
