"""
Pytest for the geometry primitives: ordering, areas, convexity, segment projection.
"""
from __future__ import annotations
import math

import numpy as np
import pytest

from docrectify.core.contracts import Point2D
from docrectify.geometry.primitives import (
    centroid,
    edge_parameter,
    is_convex,
    order_points,
    point_to_segment_distance,
    polygon_area,
    quad_area,
    sort_clockwise,
)

# ---------- Helpers ---------- #

def _pts(*xy) -> list[Point2D]:
    return [Point2D(float(x), float(y)) for x, y in xy]

SQUARE = _pts((0, 0), (10, 0), (10, 10), (0, 10))
RECT = _pts((0, 0), (10, 0), (10, 5), (0, 5))

# ---------- Ordering ---------- #

def test_centroid_of_square():
    assert centroid(SQUARE) == Point2D(5.0, 5.0)

def test_sort_clockwise_recovers_tl_tr_br_bl():
    shuffled = [SQUARE[2], SQUARE[0], SQUARE[3], SQUARE[1]]
    assert sort_clockwise(shuffled) == SQUARE

def test_sort_clockwise_is_stable_for_equal_angles():
    # centroid is the origin; (2,0) and (1,0) share angle 0
    pts = _pts((2, 0), (1, 0), (-3, 0), (0, 1), (0, -1))
    out = sort_clockwise(pts)
    assert out == _pts((0, -1), (2, 0), (1, 0), (0, 1), (-3, 0))

    swapped = _pts((1, 0), (2, 0), (-3, 0), (0, 1), (0, -1))
    assert sort_clockwise(swapped)[1:3] == _pts((1, 0), (2, 0))

def test_order_points_starts_nearest_origin():
    pts = _pts((110, 60), (12, 58), (100, 5), (10, 8))
    out = order_points(pts)
    assert out[0] == Point2D(10, 8)
    assert out == _pts((10, 8), (100, 5), (110, 60), (12, 58))

# ---------- Areas ---------- #

def test_quad_area_rectangle():
    assert quad_area(RECT) == pytest.approx(50.0)

@pytest.mark.parametrize("shift", [0, 1, 2, 3])
def test_quad_area_invariant_under_rotation_and_reversal(shift):
    quad = _pts((3, 1), (17, 4), (15, 12), (1, 9))
    rotated = quad[shift:] + quad[:shift]
    assert quad_area(rotated) == pytest.approx(quad_area(quad))
    assert quad_area(list(reversed(rotated))) == pytest.approx(quad_area(quad))

def test_quad_area_zero_for_collinear_points():
    assert quad_area(_pts((0, 0), (1, 1), (2, 2), (3, 3))) == pytest.approx(0.0)

def test_quad_area_requires_four_points():
    with pytest.raises(ValueError):
        quad_area(SQUARE[:3])

def test_polygon_area_degenerate_inputs():
    assert polygon_area([]) == 0.0
    assert polygon_area(SQUARE[:2]) == 0.0

# ---------- Convexity ---------- #

def test_is_convex_rectangle_either_winding():
    assert is_convex(RECT)
    assert is_convex(list(reversed(RECT)))

def test_is_convex_false_for_bowtie():
    assert not is_convex(_pts((0, 0), (10, 10), (10, 0), (0, 10)))

def test_is_convex_ignores_collinear_vertices():
    assert is_convex(_pts((0, 0), (5, 0), (10, 0), (10, 10), (0, 10)))

def test_is_convex_false_below_three_points():
    assert not is_convex(SQUARE[:2])

def test_is_convex_false_for_concave_pentagon():
    assert not is_convex(_pts((0, 0), (10, 0), (5, 3), (10, 10), (0, 10)))

# ---------- Segment projection ---------- #

def test_point_to_segment_distance_projection_and_clamp():
    a, b = Point2D(0, 0), Point2D(10, 0)
    assert point_to_segment_distance(Point2D(5, 5), a, b) == pytest.approx(5.0)
    assert point_to_segment_distance(Point2D(15, 0), a, b) == pytest.approx(5.0)
    assert point_to_segment_distance(Point2D(-3, 4), a, b) == pytest.approx(5.0)

def test_edge_parameter_clamped_to_unit_interval():
    a, b = Point2D(0, 0), Point2D(10, 0)
    assert edge_parameter(Point2D(5, 3), a, b) == pytest.approx(0.5)
    assert edge_parameter(Point2D(-4, 0), a, b) == 0.0
    assert edge_parameter(Point2D(14, 0), a, b) == 1.0

def test_zero_length_segment_uses_point_distance_and_half_param():
    a = Point2D(2, 2)
    p = Point2D(5, 6)
    assert point_to_segment_distance(p, a, a) == pytest.approx(5.0)
    assert edge_parameter(p, a, a) == 0.5

def test_random_points_project_inside_segment():
    rng = np.random.default_rng(7)
    a, b = Point2D(3, 4), Point2D(40, -12)
    for _ in range(50):
        p = Point2D(*rng.uniform(-50, 50, size=2))
        t = edge_parameter(p, a, b)
        q = Point2D(a.x + t * (b.x - a.x), a.y + t * (b.y - a.y))
        assert 0.0 <= t <= 1.0
        assert point_to_segment_distance(p, a, b) == pytest.approx(math.hypot(p.x - q.x, p.y - q.y))
