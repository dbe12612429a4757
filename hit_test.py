# hit_test.py
import math
from typing import Optional, Sequence

from scaffold_logic import DrawingTool, Point, Stroke, SupportPost, distance

# Screen-pixel radii at 100 % zoom; divided by the zoom factor at use.
ENDPOINT_SNAP_PX = 5.0
STROKE_HIT_PX = 3.0
POST_HIT_PX = 5.0


def distance_to_segment(p: Point, a: Point, b: Point) -> float:
    vx, vy = b.x - a.x, b.y - a.y
    len_sq = vx * vx + vy * vy
    if len_sq == 0:
        return distance(p, a)
    t = ((p.x - a.x) * vx + (p.y - a.y) * vy) / len_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(p.x - (a.x + t * vx), p.y - (a.y + t * vy))

def find_nearest_endpoint(point: Point, strokes: Sequence[Stroke], tool: DrawingTool,
                          zoom: float = 1.0) -> Optional[Point]:
    if not tool.snap_to_endpoints:
        return None
    best = None
    best_d = ENDPOINT_SNAP_PX / zoom
    for stroke in strokes:
        if not stroke.points:
            continue
        for endpoint in (stroke.points[0], stroke.points[-1]):
            d = distance(point, endpoint)
            if d < best_d:
                best, best_d = endpoint, d
    return best

def find_stroke_at_point(point: Point, strokes: Sequence[Stroke], zoom: float = 1.0) -> Optional[Stroke]:
    """Newest stroke with any piece of its polyline within the eraser radius."""
    threshold = STROKE_HIT_PX / zoom
    for stroke in reversed(strokes):
        pts = stroke.points
        for i in range(len(pts) - 1):
            if distance_to_segment(point, pts[i], pts[i + 1]) <= threshold:
                return stroke
    return None

def find_support_post_at_point(point: Point, posts: Sequence[SupportPost], zoom: float = 1.0) -> Optional[SupportPost]:
    threshold = POST_HIT_PX / zoom
    for post in reversed(posts):
        if distance(point, post.center) <= threshold:
            return post
    return None

def calculate_right_angle_point(start: Point, current: Point) -> Point:
    if abs(current.x - start.x) > abs(current.y - start.y):
        return Point(current.x, start.y)
    return Point(start.x, current.y)
