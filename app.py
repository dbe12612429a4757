# app.py — v1.2.0
# - Gestures are typed as point lists (canvas px) and replayed through the gesture controller
# - Scaffold mode builds whole bays with posts at every structural joint
# - Straight / right-angle pen drags split into catalog members, coloured by length
# - Keeps: configuration CSV download/upload, reset confirm, SVG preview download, BOM CSV

import copy
import re
import streamlit as st
import streamlit.components.v1 as components
import pandas as pd

from gesture import DrawingSurface, GestureController
from logging_config import setup_logging
from scaffold_config import (
    ZOOM_MAX, ZOOM_MIN, ZOOM_STEP, SIZE_MAX, SIZE_MIN,
    clamp, config_from_csv, config_to_csv, default_config, normalize_config,
    selection_from_config, tool_from_config,
)
from scaffold_logic import (
    COMPONENT_PALETTE, POST_DIAMETER_MM, SCAFFOLD_COLORS, SCAFFOLD_LENGTHS, TOOL_TYPES,
    Point, bill_of_materials, distance, pixels_to_mm,
)

TOOL_LABELS = {
    "pen": "Pen (freehand / straight)",
    "scaffold-mode": "Scaffold bay",
    "line-eraser": "Line eraser",
    "select": "Pan",
}

if "_logging_ready" not in st.session_state:
    setup_logging(level="INFO")
    st.session_state["_logging_ready"] = True

if "base_config" not in st.session_state:
    st.session_state["base_config"] = default_config()
if "config" not in st.session_state:
    st.session_state["config"] = copy.deepcopy(st.session_state["base_config"])
if "surface" not in st.session_state:
    st.session_state["surface"] = DrawingSurface()

config = st.session_state["config"]
surface = st.session_state["surface"]

def cfg_get(key, default):
    if key not in config:
        config[key] = default
    return config[key]

def cfg_set(key, value):
    config[key] = value

def _sync_single(cfg, key, widget_key):
    if key in cfg:
        st.session_state[widget_key] = cfg[key]

def sync_session_state_from_config(cfg):
    _sync_single(cfg, "layout_name", "cfg_layout_name")
    _sync_single(cfg, "tool_type", "cfg_tool_type")
    _sync_single(cfg, "tool_size", "cfg_tool_size")
    _sync_single(cfg, "tool_color", "cfg_tool_color")
    _sync_single(cfg, "straight_line_mode", "cfg_straight")
    _sync_single(cfg, "right_angle_mode", "cfg_right_angle")
    _sync_single(cfg, "snap_to_endpoints", "cfg_snap")
    _sync_single(cfg, "bay_height_mm", "cfg_bay_height")
    _sync_single(cfg, "selected_component", "cfg_component")
    _sync_single(cfg, "grid_visible", "cfg_grid")
    _sync_single(cfg, "show_lengths", "cfg_show_lengths")
    _sync_single(cfg, "show_preview_posts", "cfg_preview_posts")
    if "zoom" in cfg:
        st.session_state["cfg_zoom_pct"] = int(round(float(cfg["zoom"]) * 100))

st.set_page_config(page_title="Scaffold Sketch (Streamlit)", layout="wide", initial_sidebar_state="expanded")
st.title("Scaffold Sketch — system scaffold layout v1.2.0")

with st.expander("Instructions", expanded=False):
    st.markdown(
        f"""
        **Scale**: one grid square is 96 px = 300 mm.

        1. Pick a tool in the sidebar. **Scaffold bay** turns one drag into a full bay: the drag is the
           ledger side, the bay hangs off it at the selected bay height.
        2. With **Pen**, turn on *Straight line* or *Right angle* to split a drag into catalog members
           ({", ".join(str(L) for L in SCAFFOLD_LENGTHS)} mm). Drags under {SCAFFOLD_LENGTHS[0]} mm are ignored.
        3. Type the gesture as canvas points `x,y; x,y; ...` (first = press, last = release) and press
           **Commit gesture**. The live preview shows what will be committed.
        4. Support posts (Ø{POST_DIAMETER_MM} mm) are placed at every structural joint and never doubled up.
        5. Download the drawing as SVG or the member list as CSV at the bottom of the page.
        """
    )

with st.sidebar:
    st.header("Configuration")
    st.download_button(
        "Download configuration CSV",
        data=config_to_csv(config),
        file_name=f"{cfg_get('layout_name', 'layout').replace(' ', '_')}_config.csv",
        mime="text/csv"
    )
    if "_config_loaded_id" not in st.session_state:
        st.session_state["_config_loaded_id"] = None
    uploaded_cfg = st.file_uploader("Upload configuration CSV", type="csv", key="config_file_uploader")
    if uploaded_cfg is not None:
        token = (getattr(uploaded_cfg, "id", None), uploaded_cfg.name, uploaded_cfg.size)
        if st.session_state.get("_config_loaded_id") != token:
            try:
                new_cfg = config_from_csv(uploaded_cfg.getvalue().decode("utf-8"), st.session_state["base_config"])
            except (ValueError, UnicodeDecodeError) as e:
                st.error(f"Failed to load configuration: {e}")
                st.session_state["_config_loaded_id"] = None
            else:
                st.session_state["config"] = new_cfg
                config = new_cfg
                sync_session_state_from_config(config)
                st.session_state["_config_loaded_id"] = token
                st.rerun()
    else:
        st.session_state["_config_loaded_id"] = None

    if st.button("Reset configuration"):
        st.session_state["confirm_reset"] = True
    if st.session_state.get("confirm_reset"):
        st.warning("Reset will revert all inputs to defaults.")
        col_reset1, col_reset2 = st.columns(2)
        with col_reset1:
            if st.button("Yes, reset", key="cfg_reset_confirm"):
                st.session_state["config"] = copy.deepcopy(st.session_state["base_config"])
                config = st.session_state["config"]
                sync_session_state_from_config(config)
                st.session_state["confirm_reset"] = False
                st.rerun()
        with col_reset2:
            if st.button("Cancel", key="cfg_reset_cancel"):
                st.session_state["confirm_reset"] = False
                st.rerun()

    st.header("Tool")
    cfg_set("layout_name", st.text_input("Layout name", value=cfg_get("layout_name", "Layout 01"), key="cfg_layout_name"))
    tool_type = st.radio(
        "Tool", list(TOOL_TYPES), index=list(TOOL_TYPES).index(cfg_get("tool_type", "pen")),
        format_func=lambda t: TOOL_LABELS[t], key="cfg_tool_type"
    )
    cfg_set("tool_type", tool_type)
    if tool_type == "scaffold-mode":
        bay_height = st.selectbox(
            "Bay height (mm)", SCAFFOLD_LENGTHS,
            index=SCAFFOLD_LENGTHS.index(cfg_get("bay_height_mm", 902)), key="cfg_bay_height"
        )
        cfg_set("bay_height_mm", bay_height)
    cfg_set("tool_size", st.slider("Line width", SIZE_MIN, SIZE_MAX, int(cfg_get("tool_size", 2)), key="cfg_tool_size"))
    cfg_set("tool_color", st.color_picker("Pen colour", cfg_get("tool_color", "#2563eb"), key="cfg_tool_color"))
    cfg_set("straight_line_mode", st.checkbox("Straight line", value=cfg_get("straight_line_mode", False), key="cfg_straight"))
    cfg_set("right_angle_mode", st.checkbox("Right angle", value=cfg_get("right_angle_mode", False), key="cfg_right_angle"))
    cfg_set("snap_to_endpoints", st.checkbox("Snap to endpoints", value=cfg_get("snap_to_endpoints", False), key="cfg_snap"))

    st.header("Components")
    palette_ids = [""] + [entry.id for entry in COMPONENT_PALETTE]
    palette_names = {entry.id: entry.name for entry in COMPONENT_PALETTE}
    palette_names[""] = "None (split by catalog)"
    current_component = cfg_get("selected_component", "")
    component = st.selectbox(
        "Draw as", palette_ids,
        index=palette_ids.index(current_component) if current_component in palette_ids else 0,
        format_func=lambda cid: palette_names[cid], key="cfg_component"
    )
    cfg_set("selected_component", component)

    st.header("View")
    zoom_pct = st.number_input(
        "Zoom (%)", min_value=int(ZOOM_MIN * 100), max_value=int(ZOOM_MAX * 100),
        value=int(round(float(cfg_get("zoom", 1.0)) * 100)), step=int(ZOOM_STEP * 100), key="cfg_zoom_pct"
    )
    cfg_set("zoom", clamp(zoom_pct / 100.0, ZOOM_MIN, ZOOM_MAX))
    cfg_set("grid_visible", st.checkbox("Show grid", value=cfg_get("grid_visible", True), key="cfg_grid"))
    cfg_set("show_lengths", st.checkbox("Show member lengths", value=cfg_get("show_lengths", True), key="cfg_show_lengths"))
    cfg_set("show_preview_posts", st.checkbox("Preview support posts", value=cfg_get("show_preview_posts", True), key="cfg_preview_posts"))
    if st.button("Reset pan"):
        surface.offset = Point(0.0, 0.0)

    if st.button("Clear drawing"):
        st.session_state["confirm_clear"] = True
    if st.session_state.get("confirm_clear"):
        st.warning("Remove every stroke, bay and support post?")
        col_clear1, col_clear2 = st.columns(2)
        with col_clear1:
            if st.button("Yes, clear", key="clear_confirm"):
                surface.clear()
                st.session_state["confirm_clear"] = False
                st.rerun()
        with col_clear2:
            if st.button("Cancel", key="clear_cancel"):
                st.session_state["confirm_clear"] = False
                st.rerun()

config = normalize_config(config)
st.session_state["config"] = config
surface.set_zoom(config["zoom"])

try:
    tool = tool_from_config(config)
    selection = selection_from_config(config)
except ValueError as e:
    st.error(f"Invalid tool configuration: {e}")
    st.stop()

# =========================================================
# Gesture input
# =========================================================
_POINT_RE = re.compile(r"\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*")

def parse_points(text):
    pts = []
    for chunk in str(text).replace("\n", ";").split(";"):
        if not chunk.strip():
            continue
        m = _POINT_RE.fullmatch(chunk)
        if not m:
            raise ValueError(f"Cannot read point '{chunk.strip()}' (expected x,y)")
        pts.append(Point(float(m.group(1)), float(m.group(2))))
    return pts

gesture_text = st.text_input("Gesture points (canvas px)", value="96,96; 677.44,96", key="gesture_points")
try:
    gesture_pts = parse_points(gesture_text)
except ValueError as e:
    st.error(str(e))
    gesture_pts = []

controller = GestureController(surface)
preview = None
if gesture_pts and tool.type not in ("select", "line-eraser"):
    # Replay without releasing to get the live preview, then abandon it.
    preview_controller = GestureController(surface)
    preview_controller.start(gesture_pts[0], tool, config["bay_height_mm"], selection)
    for p in gesture_pts[1:]:
        preview_controller.move(p)
    preview = preview_controller.preview()
    preview_controller.cancel()

col_commit, col_info = st.columns([1, 3])
with col_commit:
    if st.button("Commit gesture", disabled=not gesture_pts):
        result = controller.replay(gesture_pts, tool, config["bay_height_mm"], selection)
        if tool.type in ("pen", "scaffold-mode") and result.is_empty:
            st.session_state["_last_gesture_msg"] = ("warn", f"Nothing committed: drag is shorter than {SCAFFOLD_LENGTHS[0]} mm.")
        else:
            st.session_state["_last_gesture_msg"] = (
                "ok",
                f"Added {len(result.strokes)} stroke(s), {len(result.posts)} post(s); "
                f"removed {len(result.removed_stroke_ids)} stroke(s), {len(result.removed_post_ids)} post(s)."
            )
        st.rerun()
with col_info:
    msg = st.session_state.pop("_last_gesture_msg", None)
    if msg:
        (st.warning if msg[0] == "warn" else st.success)(msg[1])
    if len(gesture_pts) >= 2:
        drag_mm = pixels_to_mm(distance(gesture_pts[0], gesture_pts[-1]))
        st.caption(f"Drag length: {drag_mm:.0f} mm")

# =========================================================
# Renderer
# =========================================================
def render_canvas_svg(surface, preview, cfg):
    w, h = cfg["canvas_width"], cfg["canvas_height"]
    zoom = surface.zoom
    ox, oy = surface.offset.x, surface.offset.y

    def tx(p):
        return p.x * zoom + ox, p.y * zoom + oy

    parts = [
        f'<svg viewBox="0 0 {w} {h}" width="100%" height="{h}" xmlns="http://www.w3.org/2000/svg">',
        '<style>.len { font-family: Inter,Arial,sans-serif; font-size:11px; fill:#111; } '
        '.post { fill:none; stroke:#111; stroke-width:1.5; }</style>',
        f'<rect x="0" y="0" width="{w}" height="{h}" fill="#ffffff"/>',
    ]
    if cfg["grid_visible"]:
        step = cfg["grid_px"] * zoom
        x0 = ox % step; y0 = oy % step
        x = x0
        while x <= w:
            parts.append(f'<line x1="{x:.2f}" y1="0" x2="{x:.2f}" y2="{h}" stroke="#cbd5e1" stroke-opacity="0.8"/>')
            x += step
        y = y0
        while y <= h:
            parts.append(f'<line x1="0" y1="{y:.2f}" x2="{w}" y2="{y:.2f}" stroke="#cbd5e1" stroke-opacity="0.8"/>')
            y += step

    for stroke in surface.strokes:
        if len(stroke.points) < 2:
            continue
        pts = " ".join(f"{x:.2f},{y:.2f}" for x, y in map(tx, stroke.points))
        width = max(stroke.size * zoom, 2)
        parts.append(f'<polyline points="{pts}" stroke="{stroke.color}" stroke-width="{width:.2f}" fill="none" stroke-linecap="round" stroke-linejoin="round"/>')
        if cfg["show_lengths"] and stroke.is_segment:
            (x1, y1), (x2, y2) = tx(stroke.points[0]), tx(stroke.points[1])
            parts.append(f'<text class="len" x="{(x1 + x2) / 2:.2f}" y="{(y1 + y2) / 2 - 4:.2f}" text-anchor="middle">{stroke.length_mm}mm</text>')

    for post in surface.posts:
        cx, cy = tx(post.center)
        parts.append(f'<circle class="post" cx="{cx:.2f}" cy="{cy:.2f}" r="{post.radius_px * zoom:.2f}"/>')

    if preview is not None:
        if preview.points and len(preview.points) > 1:
            pts = " ".join(f"{x:.2f},{y:.2f}" for x, y in map(tx, preview.points))
            parts.append(f'<polyline points="{pts}" stroke="{preview.color}" stroke-width="2" fill="none" stroke-opacity="0.6"/>')
        for seg in preview.segments:
            (x1, y1), (x2, y2) = tx(seg.start), tx(seg.end)
            color = SCAFFOLD_COLORS.get(seg.length_mm, "#000000")
            parts.append(f'<line x1="{x1:.2f}" y1="{y1:.2f}" x2="{x2:.2f}" y2="{y2:.2f}" stroke="{color}" stroke-width="3" stroke-dasharray="6 4"/>')
            if cfg["show_lengths"]:
                parts.append(f'<text class="len" x="{(x1 + x2) / 2:.2f}" y="{(y1 + y2) / 2 - 4:.2f}" text-anchor="middle">{seg.length_mm}mm</text>')
        for seg in preview.outline:
            (x1, y1), (x2, y2) = tx(seg.start), tx(seg.end)
            parts.append(f'<line x1="{x1:.2f}" y1="{y1:.2f}" x2="{x2:.2f}" y2="{y2:.2f}" stroke="{preview.color}" stroke-width="2" stroke-dasharray="6 4"/>')
        if cfg["show_preview_posts"]:
            for post in preview.posts:
                cx, cy = tx(post.center)
                parts.append(f'<circle cx="{cx:.2f}" cy="{cy:.2f}" r="{post.radius_px * zoom:.2f}" fill="none" stroke="#111" stroke-dasharray="3 3"/>')
    parts.append("</svg>")
    return "".join(parts), h

svg, svg_h = render_canvas_svg(surface, preview, config)
components.html(svg, height=svg_h + 10, scrolling=True)

st.download_button(
    "Download drawing as SVG",
    data=svg.encode("utf-8"),
    file_name=f"{config['layout_name'].replace(' ', '_')}_drawing.svg",
    mime="image/svg+xml"
)

if surface.structures:
    st.success(f"Bays: {len(surface.structures)} • Strokes: {len(surface.strokes)} • Support posts: {len(surface.posts)}")

# =========================================================
# BOM table + CSV
# =========================================================
st.subheader("Bill of Materials")
rows = bill_of_materials(surface.strokes, surface.posts)
if rows:
    df_bom = pd.DataFrame(rows, columns=["Item", "Length (mm)", "QTY"])
    df_bom["Length (mm)"] = df_bom["Length (mm)"].astype("Int64")
    st.dataframe(df_bom, use_container_width=True)
    csv_bytes = df_bom.to_csv(index=False).encode("utf-8")
    st.download_button("Download BOM CSV", data=csv_bytes, file_name=f"{config['layout_name'].replace(' ', '_')}_BOM.csv", mime="text/csv")
else:
    st.write("Nothing yet for this drawing.")
