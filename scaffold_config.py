# scaffold_config.py
import csv
import io
import json
from typing import Optional

from scaffold_logic import (
    COMPONENT_PALETTE, SCAFFOLD_LENGTHS, TOOL_TYPES,
    ComponentSelection, DrawingTool, resolve_component,
)

ZOOM_MIN = 0.1
ZOOM_MAX = 5.0
ZOOM_STEP = 0.05
SIZE_MIN = 1
SIZE_MAX = 20
DEFAULT_BAY_HEIGHT_MM = 902

def default_config():
    return {
        "layout_name": "Layout 01",
        "tool_type": "pen",
        "tool_size": 2,
        "tool_color": "#2563eb",
        "straight_line_mode": False,
        "right_angle_mode": False,
        "snap_to_endpoints": False,
        "bay_height_mm": DEFAULT_BAY_HEIGHT_MM,
        "selected_component": "",
        "zoom": 1.0,
        "grid_visible": True,
        "grid_px": 96,
        "canvas_width": 1200,
        "canvas_height": 700,
        "show_lengths": True,
        "show_preview_posts": True,
    }

def clamp(value, lo, hi):
    return max(lo, min(hi, value))

def nearest_catalog_length(mm) -> int:
    try:
        mm = float(mm)
    except (TypeError, ValueError):
        return DEFAULT_BAY_HEIGHT_MM
    mm = clamp(mm, SCAFFOLD_LENGTHS[0], SCAFFOLD_LENGTHS[-1])
    return min(SCAFFOLD_LENGTHS, key=lambda L: abs(L - mm))

def _as_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default

def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)

def normalize_config(cfg):
    """
    Merge onto the defaults and clamp everything the drawing engine reads:
      - size 1..20, zoom 0.1..5.0,
      - bay height snapped to the nearest catalog length,
      - unknown tool types fall back to 'pen', unknown components to none.
    """
    out = default_config()
    out.update(cfg or {})
    out["tool_size"] = clamp(_as_float(out["tool_size"], 2), SIZE_MIN, SIZE_MAX)
    out["zoom"] = clamp(_as_float(out["zoom"], 1.0), ZOOM_MIN, ZOOM_MAX)
    out["bay_height_mm"] = nearest_catalog_length(out["bay_height_mm"])
    if out["tool_type"] not in TOOL_TYPES:
        out["tool_type"] = "pen"
    known = {entry.id for entry in COMPONENT_PALETTE}
    if out["selected_component"] not in known:
        out["selected_component"] = ""
    for key in ("straight_line_mode", "right_angle_mode", "snap_to_endpoints",
                "grid_visible", "show_lengths", "show_preview_posts"):
        out[key] = _as_bool(out[key])
    return out

def tool_from_config(cfg) -> DrawingTool:
    return DrawingTool(
        type=cfg["tool_type"],
        size=cfg["tool_size"],
        color=cfg["tool_color"],
        straight_line_mode=cfg["straight_line_mode"],
        right_angle_mode=cfg["right_angle_mode"],
        snap_to_endpoints=cfg["snap_to_endpoints"],
    )

def selection_from_config(cfg) -> Optional[ComponentSelection]:
    component = cfg.get("selected_component") or None
    return resolve_component(component, cfg["bay_height_mm"])

def config_to_csv(cfg) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    for key in sorted(cfg.keys()):
        writer.writerow([key, json.dumps(cfg[key])])
    return buf.getvalue()

def config_from_csv(text, base=None):
    new_cfg = dict(base if base is not None else default_config())
    try:
        rows = list(csv.reader(io.StringIO(text)))
    except csv.Error as e:
        raise ValueError(f"Malformed configuration CSV: {e}") from e
    loaded = 0
    for row in rows:
        if len(row) < 2:
            continue
        key, raw = row[0], row[1]
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        new_cfg[key] = value
        loaded += 1
    if not loaded:
        raise ValueError("No configuration rows found")
    return normalize_config(new_cfg)
