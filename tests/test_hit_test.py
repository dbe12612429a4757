import pytest

from hit_test import (
    calculate_right_angle_point, distance_to_segment, find_nearest_endpoint,
    find_stroke_at_point, find_support_post_at_point,
)
from scaffold_logic import DrawingTool, Point, Stroke, SupportPost

SNAP = DrawingTool(snap_to_endpoints=True)


def line(sid, *pts):
    return Stroke(sid, tuple(Point(x, y) for x, y in pts), "#000000", 2)


def test_distance_to_segment_clamps_to_ends():
    a, b = Point(0, 0), Point(10, 0)
    assert distance_to_segment(Point(5, 5), a, b) == pytest.approx(5)
    assert distance_to_segment(Point(15, 0), a, b) == pytest.approx(5)
    assert distance_to_segment(Point(-3, -4), a, b) == pytest.approx(5)
    assert distance_to_segment(Point(3, 4), a, a) == pytest.approx(5)


def test_endpoint_snap():
    strokes = [line("s1", (10, 10), (200, 10))]
    assert find_nearest_endpoint(Point(12, 11), strokes, SNAP, zoom=1) == Point(10, 10)
    assert find_nearest_endpoint(Point(198, 12), strokes, SNAP) == Point(200, 10)
    assert find_nearest_endpoint(Point(100, 10), strokes, SNAP) is None


def test_endpoint_snap_is_off_unless_enabled():
    strokes = [line("s1", (10, 10), (200, 10))]
    assert find_nearest_endpoint(Point(12, 11), strokes, DrawingTool()) is None


def test_endpoint_snap_radius_shrinks_with_zoom():
    strokes = [line("s1", (10, 10), (200, 10))]
    assert find_nearest_endpoint(Point(12, 11), strokes, SNAP, zoom=2) == Point(10, 10)
    assert find_nearest_endpoint(Point(12, 11), strokes, SNAP, zoom=4) is None


def test_endpoint_snap_picks_nearest():
    strokes = [line("a", (10, 10), (100, 10)), line("b", (13, 10), (13, 100))]
    assert find_nearest_endpoint(Point(12, 10), strokes, SNAP) == Point(13, 10)


def test_stroke_hit_prefers_newest():
    strokes = [line("a", (0, 0), (100, 0)), line("b", (0, 0), (0, 100))]
    assert find_stroke_at_point(Point(1, 2), strokes).id == "b"
    assert find_stroke_at_point(Point(50, 2.5), strokes).id == "a"
    assert find_stroke_at_point(Point(50, 10), strokes) is None
    assert find_stroke_at_point(Point(50, 2), strokes, zoom=2) is None


def test_stroke_hit_checks_every_polyline_piece():
    ink = line("ink", (0, 0), (10, 0), (10, 10), (20, 10))
    assert find_stroke_at_point(Point(11, 5), [ink]).id == "ink"
    assert find_stroke_at_point(Point(15, 5), [ink]) is None


def test_support_post_hit():
    posts = [SupportPost("p1", Point(0, 0)), SupportPost("p2", Point(3, 0))]
    assert find_support_post_at_point(Point(1, 0), posts).id == "p2"
    assert find_support_post_at_point(Point(-4, 0), posts).id == "p1"
    assert find_support_post_at_point(Point(20, 0), posts) is None
    assert find_support_post_at_point(Point(-4, 0), posts, zoom=2) is None


def test_right_angle_point():
    start = Point(0, 0)
    assert calculate_right_angle_point(start, Point(10, 3)) == Point(10, 0)
    assert calculate_right_angle_point(start, Point(3, -10)) == Point(0, -10)
    assert calculate_right_angle_point(start, Point(5, 5)) == Point(0, 5)
