# gesture.py
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger

from hit_test import (
    calculate_right_angle_point, find_nearest_endpoint,
    find_stroke_at_point, find_support_post_at_point,
)
from scaffold_config import ZOOM_MAX, ZOOM_MIN, clamp
from scaffold_logic import (
    FREEFORM, MIN_SCAFFOLD_MM, PLATFORM, PLATFORM_COLOR,
    ComponentSelection, DrawingTool, Point, Segment, Stroke, Structure, SupportPost,
    build_structure, create_all_support_posts, decompose_segments, new_id,
    platform_sides, scaffold_color,
)

IDLE = "idle"
DRAWING = "drawing"
PANNING = "panning"
ERASING = "erasing"

FREEHAND = "freehand"
DRAG = "drag"


@dataclass
class Preview:
    points: List[Point] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)
    structure: Optional[Structure] = None
    posts: List[SupportPost] = field(default_factory=list)
    outline: List[Segment] = field(default_factory=list)
    color: str = "#000000"

@dataclass
class CommitResult:
    strokes: List[Stroke] = field(default_factory=list)
    structure: Optional[Structure] = None
    posts: List[SupportPost] = field(default_factory=list)
    removed_stroke_ids: List[str] = field(default_factory=list)
    removed_post_ids: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.strokes or self.structure or self.posts
                    or self.removed_stroke_ids or self.removed_post_ids)

    def merge(self, other: "CommitResult") -> "CommitResult":
        self.strokes.extend(other.strokes)
        if other.structure is not None:
            self.structure = other.structure
        self.posts.extend(other.posts)
        self.removed_stroke_ids.extend(other.removed_stroke_ids)
        self.removed_post_ids.extend(other.removed_post_ids)
        return self


def segment_strokes(segments: List[Segment], size: float, prefix: Optional[str] = None) -> List[Stroke]:
    prefix = prefix or new_id()
    now = time.time()
    return [
        Stroke(f"{prefix}-{i}", (seg.start, seg.end), scaffold_color(seg.length_mm), size, now)
        for i, seg in enumerate(segments)
    ]

def platform_strokes(start: Point, size: float, prefix: Optional[str] = None) -> List[Stroke]:
    prefix = prefix or new_id()
    now = time.time()
    names = ("top", "right", "bottom", "left")
    return [
        Stroke(f"{prefix}-platform-{name}", (a, b), PLATFORM_COLOR, size, now)
        for name, (a, b) in zip(names, platform_sides(start))
    ]


class DrawingSurface:
    """Owns the committed strokes, bays and posts plus the view (zoom, pan)."""

    def __init__(self, zoom: float = 1.0):
        self.strokes: List[Stroke] = []
        self.structures: List[Structure] = []
        self.posts: List[SupportPost] = []
        self.zoom = clamp(zoom, ZOOM_MIN, ZOOM_MAX)
        self.offset = Point(0.0, 0.0)

    def apply(self, result: CommitResult) -> None:
        if result.removed_stroke_ids:
            gone = set(result.removed_stroke_ids)
            self.strokes = [s for s in self.strokes if s.id not in gone]
        if result.removed_post_ids:
            gone = set(result.removed_post_ids)
            self.posts = [p for p in self.posts if p.id not in gone]
        self.strokes.extend(result.strokes)
        if result.structure is not None:
            self.structures.append(result.structure)
        self.posts.extend(result.posts)

    def clear(self) -> None:
        logger.info("Clearing {} stroke(s), {} bay(s), {} post(s)",
                    len(self.strokes), len(self.structures), len(self.posts))
        self.strokes = []
        self.structures = []
        self.posts = []

    def set_zoom(self, zoom: float) -> None:
        self.zoom = clamp(zoom, ZOOM_MIN, ZOOM_MAX)

    def pan_by(self, dx: float, dy: float) -> None:
        self.offset = self.offset.offset(dx, dy)

    def to_canvas(self, screen: Point) -> Point:
        return Point((screen.x - self.offset.x) / self.zoom, (screen.y - self.offset.y) / self.zoom)


class GestureController:
    """
    Drives one pointer gesture at a time: start -> move* -> end (or cancel).
    The tool, bay height and component selection are fixed when the gesture starts.
    """

    def __init__(self, surface: DrawingSurface):
        self.surface = surface
        self.state = IDLE
        self._reset()

    def _reset(self):
        self.state = IDLE
        self._mode = None
        self._tool: Optional[DrawingTool] = None
        self._selection = ComponentSelection(FREEFORM)
        self._bay_height_mm = 0.0
        self._origin: Optional[Point] = None
        self._current: Optional[Point] = None
        self._points: List[Point] = []
        self._last: Optional[Point] = None

    def _snap(self, point: Point) -> Point:
        snapped = find_nearest_endpoint(point, self.surface.strokes, self._tool, self.surface.zoom)
        return snapped if snapped is not None else point

    def _erase_at(self, point: Point) -> CommitResult:
        result = CommitResult()
        stroke = find_stroke_at_point(point, self.surface.strokes, self.surface.zoom)
        if stroke is not None:
            result.removed_stroke_ids.append(stroke.id)
        post = find_support_post_at_point(point, self.surface.posts, self.surface.zoom)
        if post is not None:
            result.removed_post_ids.append(post.id)
        if not result.is_empty:
            logger.info("Erased strokes={} posts={}", result.removed_stroke_ids, result.removed_post_ids)
            self.surface.apply(result)
        return result

    def start(self, point: Point, tool: DrawingTool, bay_height_mm: float = 902,
              selection: Optional[ComponentSelection] = None) -> CommitResult:
        if self.state != IDLE:
            self.cancel()
        self._tool = tool
        self._selection = selection or ComponentSelection(FREEFORM)
        self._bay_height_mm = bay_height_mm

        if tool.type == "select":
            self.state = PANNING
            self._last = point
            return CommitResult()
        if tool.type == "line-eraser":
            self.state = ERASING
            self._last = point
            return self._erase_at(point)

        point = self._snap(point)
        if tool.type == "pen" and not tool.draws_straight:
            self._mode = FREEHAND
            self._points = [point]
        else:
            self._mode = DRAG
            self._origin = point
            self._current = point
        self.state = DRAWING
        self._last = point
        return CommitResult()

    def move(self, point: Point) -> CommitResult:
        if self.state == PANNING:
            self.surface.pan_by(point.x - self._last.x, point.y - self._last.y)
            self._last = point
            return CommitResult()
        if self.state == ERASING:
            self._last = point
            return self._erase_at(point)
        if self.state != DRAWING:
            return CommitResult()

        point = self._snap(point)
        if self._mode == FREEHAND:
            self._points.append(point)
        elif self._tool.right_angle_mode:
            self._current = calculate_right_angle_point(self._origin, point)
        else:
            self._current = point
        self._last = point
        return CommitResult()

    def end(self) -> CommitResult:
        result = CommitResult()
        if self.state == DRAWING:
            result = self._commit()
            if not result.is_empty:
                self.surface.apply(result)
        self._reset()
        return result

    def cancel(self) -> None:
        if self.state == DRAWING:
            logger.debug("Gesture abandoned, discarding preview")
        self._reset()

    def replay(self, points: Sequence[Point], tool: DrawingTool, bay_height_mm: float = 902,
               selection: Optional[ComponentSelection] = None) -> CommitResult:
        """Run a whole recorded gesture; the result covers every step, erasures included."""
        result = self.start(points[0], tool, bay_height_mm, selection)
        for p in points[1:]:
            result.merge(self.move(p))
        return result.merge(self.end())

    def _commit(self) -> CommitResult:
        tool = self._tool
        if self._mode == FREEHAND:
            stroke = Stroke(new_id(), tuple(self._points), tool.color, tool.size, time.time())
            return CommitResult(strokes=[stroke])

        origin, current = self._origin, self._current
        if self._selection.kind == PLATFORM:
            logger.info("Platform placed at ({:.1f}, {:.1f})", origin.x, origin.y)
            return CommitResult(strokes=platform_strokes(origin, tool.size))

        if tool.type == "scaffold-mode":
            structure = build_structure(origin, current, self._bay_height_mm, self._selection)
            if structure.is_empty:
                logger.debug("Bay drag below {} mm, nothing committed", MIN_SCAFFOLD_MM)
                return CommitResult()
            posts = create_all_support_posts(structure, self.surface.posts, self.surface.strokes)
            logger.info("Committed bay {} ({:.0f} x {:.0f} mm) with {} post(s)",
                        structure.id, structure.width_mm, structure.height_mm, len(posts))
            return CommitResult(
                strokes=segment_strokes(structure.segments, tool.size, structure.id),
                structure=structure,
                posts=posts,
            )

        segments = decompose_segments(origin, current, self._selection)
        if not segments:
            return CommitResult()
        logger.info("Committed {} segment(s): {}", len(segments), [s.length_mm for s in segments])
        return CommitResult(strokes=segment_strokes(segments, tool.size))

    def preview(self) -> Optional[Preview]:
        if self.state != DRAWING:
            return None
        tool = self._tool
        if self._mode == FREEHAND:
            return Preview(points=list(self._points), color=tool.color)

        origin, current = self._origin, self._current
        if self._selection.kind == PLATFORM:
            outline = [Segment(a, b, 0) for a, b in platform_sides(origin)]
            return Preview(outline=outline, color=PLATFORM_COLOR)
        if tool.type == "scaffold-mode":
            structure = build_structure(origin, current, self._bay_height_mm, self._selection, structure_id="preview")
            posts = [] if structure.is_empty else create_all_support_posts(
                structure, self.surface.posts, self.surface.strokes)
            return Preview(segments=structure.segments, structure=structure, posts=posts)
        return Preview(segments=decompose_segments(origin, current, self._selection))
