# scaffold_logic.py
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Dict, Tuple, Optional, Sequence

from loguru import logger

# Display scale: 96 px on screen stand for 300 mm on site.
MM_PER_PX = 300 / 96

SCAFFOLD_LENGTHS = [293, 598, 902, 1207, 1512, 1817]
MIN_SCAFFOLD_MM = SCAFFOLD_LENGTHS[0]
MAX_SCAFFOLD_MM = SCAFFOLD_LENGTHS[-1]
EXACT_MATCH_TOL_MM = 50
BAY_HEIGHT_TOL_MM = 10
JOINT_TOL_PX = 1.0
EPS = 1e-6

POST_DIAMETER_MM = 130
CORNER_POST_DEDUP = 2.0
JOINT_POST_DEDUP = 1.5

PLATFORM_WIDTH_MM = 600
PLATFORM_HEIGHT_MM = 300
PLATFORM_COLOR = "#6b7280"

DEFAULT_SEGMENT_COLOR = "#000000"
SCAFFOLD_COLORS = {
    293: "#FF0000",
    598: "#FF8C00",
    902: "#32CD32",
    1207: "#0080FF",
    1512: "#8A2BE2",
    1817: "#FF1493",
}

TOOL_TYPES = ("pen", "scaffold-mode", "line-eraser", "select")

FREEFORM = "freeform"
FIXED_HORIZONTAL = "fixed-horizontal"
FIXED_VERTICAL = "fixed-vertical"
PLATFORM = "platform"


def pixels_to_mm(px: float) -> float:
    return px * MM_PER_PX

def mm_to_pixels(mm: float) -> float:
    return mm / MM_PER_PX

POST_RADIUS_PX = mm_to_pixels(POST_DIAMETER_MM / 2)


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def offset(self, dx: float, dy: float) -> "Point":
        return Point(self.x + dx, self.y + dy)

@dataclass(frozen=True)
class Segment:
    start: Point
    end: Point
    length_mm: int

@dataclass(frozen=True)
class Structure:
    id: str
    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point
    width_mm: float
    height_mm: float
    horizontal_segments: Tuple[Segment, ...] = ()
    vertical_segments: Tuple[Segment, ...] = ()

    @property
    def corners(self) -> Tuple[Point, Point, Point, Point]:
        return (self.top_left, self.top_right, self.bottom_left, self.bottom_right)

    @property
    def segments(self) -> List[Segment]:
        return list(self.horizontal_segments) + list(self.vertical_segments)

    @property
    def is_empty(self) -> bool:
        return not self.horizontal_segments

@dataclass(frozen=True)
class SupportPost:
    id: str
    center: Point
    radius_px: float = POST_RADIUS_PX

@dataclass(frozen=True)
class Stroke:
    id: str
    points: Tuple[Point, ...]
    color: str
    size: float
    timestamp: float = field(default_factory=time.time)

    @property
    def is_segment(self) -> bool:
        return len(self.points) == 2

    @property
    def length_mm(self) -> int:
        if not self.is_segment:
            return 0
        return int(round(pixels_to_mm(distance(self.points[0], self.points[1]))))

@dataclass(frozen=True)
class DrawingTool:
    type: str = "pen"
    size: float = 2
    color: str = "#2563eb"
    straight_line_mode: bool = False
    right_angle_mode: bool = False
    snap_to_endpoints: bool = False

    def __post_init__(self):
        if self.type not in TOOL_TYPES:
            raise ValueError(f"Unsupported tool type: {self.type!r}")

    @property
    def draws_straight(self) -> bool:
        return self.straight_line_mode or self.right_angle_mode

@dataclass(frozen=True)
class ComponentSelection:
    kind: str = FREEFORM
    length_mm: Optional[int] = None

@dataclass(frozen=True)
class PaletteEntry:
    id: str
    name: str
    type: str
    description: str


COMPONENT_PALETTE: List[PaletteEntry] = [
    PaletteEntry(f"h-beam-{L}", f"Horizontal {L} mm", "horizontal", f"{L} mm horizontal ledger")
    for L in SCAFFOLD_LENGTHS
] + [
    PaletteEntry("v-beam", "Vertical", "vertical", "Standard at the configured bay height"),
    PaletteEntry("diagonal", "Diagonal", "diagonal", "Diagonal brace"),
    PaletteEntry("joint", "Joint", "joint", "Coupler"),
    PaletteEntry("platform", "Platform", "platform", "600 x 300 mm work deck"),
]
_PALETTE_IDS = {entry.id for entry in COMPONENT_PALETTE}


def new_id() -> str:
    return uuid.uuid4().hex[:12]

def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)

def near(a: Point, b: Point, tol: float = JOINT_TOL_PX) -> bool:
    return abs(a.x - b.x) < tol and abs(a.y - b.y) < tol

def unit_vector(start: Point, end: Point) -> Optional[Tuple[float, float]]:
    L = distance(start, end)
    if L == 0:
        return None
    return (end.x - start.x) / L, (end.y - start.y) / L

def scaffold_color(length_mm: float) -> str:
    return SCAFFOLD_COLORS.get(int(round(length_mm)), DEFAULT_SEGMENT_COLOR)

def resolve_component(component_id: Optional[str], bay_height_mm: float) -> ComponentSelection:
    """
    Turn a palette id into a typed selection once, when it is picked:
      'h-beam-902' -> fixed horizontal 902 mm, 'v-beam' -> fixed vertical at the
      bay height, 'platform' -> platform; anything else on the palette draws freeform.
    """
    if not component_id:
        return ComponentSelection(FREEFORM)
    if component_id not in _PALETTE_IDS:
        raise ValueError(f"Unknown component: {component_id!r}")
    if component_id.startswith("h-beam-"):
        return ComponentSelection(FIXED_HORIZONTAL, int(component_id.rsplit("-", 1)[1]))
    if component_id == "v-beam":
        return ComponentSelection(FIXED_VERTICAL, int(round(bay_height_mm)))
    if component_id == "platform":
        return ComponentSelection(PLATFORM)
    return ComponentSelection(FREEFORM)

def match_catalog_length(remaining_mm: float) -> Optional[int]:
    """
    Pick the next catalog piece for a remaining run:
      1. nothing below the smallest catalog length,
      2. the closest fitting length when it is within EXACT_MATCH_TOL_MM (the drag meant that length),
      3. otherwise the largest fitting length, leaving the rest for the next pass.
    """
    if remaining_mm < MIN_SCAFFOLD_MM - EPS:
        return None
    fitting = [L for L in SCAFFOLD_LENGTHS if L <= remaining_mm + EPS]
    best = min(fitting, key=lambda L: abs(remaining_mm - L))
    if abs(remaining_mm - best) < EXACT_MATCH_TOL_MM:
        return best
    return fitting[-1]

def decompose_segments(start: Point, end: Point, selection: Optional[ComponentSelection] = None) -> List[Segment]:
    direction = unit_vector(start, end)
    if direction is None:
        return []
    dx, dy = direction

    if selection is not None and selection.length_mm:
        seg_px = mm_to_pixels(selection.length_mm)
        if selection.kind == FIXED_HORIZONTAL:
            return [Segment(start, start.offset(dx * seg_px, dy * seg_px), selection.length_mm)]
        if selection.kind == FIXED_VERTICAL:
            return [Segment(start, start.offset(0.0, seg_px), selection.length_mm)]

    remaining = pixels_to_mm(distance(start, end))
    segs: List[Segment] = []
    current = start
    while True:
        L = match_catalog_length(remaining)
        if L is None:
            break
        seg_px = mm_to_pixels(L)
        seg_end = current.offset(dx * seg_px, dy * seg_px)
        actual = int(round(pixels_to_mm(distance(current, seg_end))))
        segs.append(Segment(current, seg_end, actual))
        remaining -= actual
        current = seg_end
    if segs and remaining > EPS:
        logger.debug("Dropped {:.0f} mm leftover after {} segment(s)", remaining, len(segs))
    return segs

def vertical_run_segments(start: Point, end: Point, height_mm: float) -> List[Segment]:
    # Within BAY_HEIGHT_TOL_MM of the bay height it is one standard member.
    actual_mm = pixels_to_mm(distance(start, end))
    if abs(actual_mm - height_mm) < BAY_HEIGHT_TOL_MM:
        return [Segment(start, end, int(round(height_mm)))]
    return decompose_segments(start, end)

def _is_structural(seg: Segment) -> bool:
    return seg.length_mm >= MIN_SCAFFOLD_MM and abs(seg.length_mm - round(seg.length_mm)) < EXACT_MATCH_TOL_MM

def _interior_verticals(horizontal: List[Segment], corners: Sequence[Point],
                        perp: Tuple[float, float], height_px: float, height_mm: float) -> List[Segment]:
    px, py = perp
    verticals: List[Segment] = []
    for i, seg in enumerate(horizontal):
        if not _is_structural(seg):
            continue
        for joint in (seg.start, seg.end):
            if any(near(joint, c) for c in corners):
                continue
            connected = any(
                near(other.start, joint) or near(other.end, joint)
                for j, other in enumerate(horizontal) if j != i
            )
            if not connected:
                continue
            # one vertical per distinct joint; both runs hang theirs by the bay height
            if any(near(v.start, joint) for v in verticals):
                continue
            verticals.append(Segment(joint, joint.offset(px * height_px, py * height_px), int(round(height_mm))))
    return verticals

def build_structure(start: Point, end: Point, bay_height_mm: float,
                    selection: Optional[ComponentSelection] = None,
                    structure_id: Optional[str] = None) -> Structure:
    """
    Build one rectangular bay from a drag. The drag is the top side; the bay hangs
    off it along the drag rotated by 90 degrees, bay_height_mm deep.
    Short drags still return a Structure, with empty segment lists.
    """
    structure_id = structure_id or new_id()
    drag_px = distance(start, end)
    direction = unit_vector(start, end)
    if direction is None:
        return Structure(structure_id, start, end, start, end, 0.0, float(bay_height_mm))

    dx, dy = direction
    perp = (-dy, dx)
    height_px = mm_to_pixels(bay_height_mm)

    top_left, top_right = start, end
    bottom_left = top_left.offset(perp[0] * height_px, perp[1] * height_px)
    bottom_right = top_right.offset(perp[0] * height_px, perp[1] * height_px)

    top = decompose_segments(top_left, top_right, selection)
    bottom = decompose_segments(bottom_left, bottom_right, selection)
    if not top and not bottom:
        return Structure(structure_id, top_left, top_right, bottom_left, bottom_right,
                         pixels_to_mm(drag_px), float(bay_height_mm))

    left = vertical_run_segments(top_left, bottom_left, bay_height_mm)
    right = vertical_run_segments(top_right, bottom_right, bay_height_mm)
    horizontal = top + bottom
    corners = (top_left, top_right, bottom_left, bottom_right)
    interior = _interior_verticals(horizontal, corners, perp, height_px, bay_height_mm)

    logger.debug(
        "Bay {}: {:.0f} x {:.0f} mm, {} horizontal, {} vertical ({} interior)",
        structure_id, pixels_to_mm(drag_px), bay_height_mm,
        len(horizontal), len(left) + len(right) + len(interior), len(interior),
    )
    return Structure(
        structure_id, top_left, top_right, bottom_left, bottom_right,
        pixels_to_mm(drag_px), float(bay_height_mm),
        tuple(horizontal), tuple(left + right + interior),
    )

def create_support_posts(structure: Structure, existing: Sequence[SupportPost]) -> List[SupportPost]:
    """Corner-only placement; a corner is skipped when a post sits within two radii."""
    posts = []
    for suffix, corner in zip(("tl", "tr", "bl", "br"), structure.corners):
        if any(distance(corner, p.center) < POST_RADIUS_PX * CORNER_POST_DEDUP for p in existing):
            continue
        posts.append(SupportPost(f"{structure.id}-{suffix}", corner, POST_RADIUS_PX))
    return posts

def _vertical_stroke_ends_at(stroke: Stroke, pos: Point) -> bool:
    if not stroke.is_segment:
        return False
    a, b = stroke.points
    if abs(b.x - a.x) >= JOINT_TOL_PX:
        return False
    return near(a, pos) or near(b, pos)

def create_all_support_posts(structure: Structure, existing_posts: Sequence[SupportPost],
                             existing_strokes: Sequence[Stroke] = ()) -> List[SupportPost]:
    """
    Place a post at every structural joint of the bay:
      - joints closer than one radius collapse into one,
      - skip joints with a post already within 1.5 radii,
      - skip joints where an existing vertical two-point stroke already ends,
      - keep only joints that end a member of at least the smallest catalog length.
    """
    segments = structure.segments
    unique: List[Point] = []
    for seg in segments:
        for pos in (seg.start, seg.end):
            if not any(distance(pos, u) < POST_RADIUS_PX for u in unique):
                unique.append(pos)

    posts: List[SupportPost] = []
    for index, pos in enumerate(unique):
        taken = list(existing_posts) + posts
        if any(distance(pos, p.center) < POST_RADIUS_PX * JOINT_POST_DEDUP for p in taken):
            continue
        if any(_vertical_stroke_ends_at(s, pos) for s in existing_strokes):
            continue
        structural = any(
            (near(seg.start, pos) or near(seg.end, pos)) and seg.length_mm >= MIN_SCAFFOLD_MM
            for seg in segments
        )
        if not structural:
            continue
        posts.append(SupportPost(f"{structure.id}-post-{index}", pos, POST_RADIUS_PX))
    logger.debug("Bay {}: {} joint(s), {} new post(s)", structure.id, len(unique), len(posts))
    return posts

def platform_sides(start: Point) -> List[Tuple[Point, Point]]:
    w = mm_to_pixels(PLATFORM_WIDTH_MM)
    h = mm_to_pixels(PLATFORM_HEIGHT_MM)
    tl = start; tr = start.offset(w, 0.0)
    bl = start.offset(0.0, h); br = start.offset(w, h)
    return [(tl, tr), (tr, br), (br, bl), (bl, tl)]

def bill_of_materials(strokes: Sequence[Stroke], posts: Sequence[SupportPost]) -> List[Tuple[str, Optional[int], int]]:
    counts: Dict[int, int] = {}
    for s in strokes:
        L = s.length_mm
        if s.is_segment and L in SCAFFOLD_COLORS:
            counts[L] = counts.get(L, 0) + 1
    rows: List[Tuple[str, Optional[int], int]] = [
        (f"Member {L} mm", L, counts[L]) for L in sorted(counts)
    ]
    if posts:
        rows.append((f"Support post Ø{POST_DIAMETER_MM} mm", None, len(posts)))
    return rows
