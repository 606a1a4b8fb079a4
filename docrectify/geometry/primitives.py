# docrectify/geometry/primitives.py
from __future__ import annotations
from typing import List, Sequence, Tuple
import math

from docrectify.core.contracts import Point2D

_CONVEX_TOL = 1e-10


def centroid(points: Sequence[Point2D]) -> Point2D:
    n = len(points)
    if n == 0:
        raise ValueError("centroid of an empty point set")
    cx = sum(p.x for p in points) / n
    cy = sum(p.y for p in points) / n
    return Point2D(cx, cy)


def sort_clockwise(points: Sequence[Point2D]) -> List[Point2D]:
    """
    Sort by angle around the centroid, ascending atan2(y - cy, x - cx).
    With y pointing down this walks clockwise on screen. Python's sort is
    stable, so equal angles keep their input order.
    """
    if not points:
        return []
    c = centroid(points)
    return sorted(points, key=lambda p: math.atan2(p.y - c.y, p.x - c.x))


def order_points(points: Sequence[Point2D]) -> List[Point2D]:
    """Clockwise order starting at the point nearest the raster origin (TL first)."""
    ordered = sort_clockwise(points)
    if not ordered:
        return ordered
    start = 0
    best = math.inf
    for i, p in enumerate(ordered):
        d = p.x * p.x + p.y * p.y
        if d < best:
            best = d
            start = i
    return ordered[start:] + ordered[:start]


def polygon_area(points: Sequence[Point2D]) -> float:
    """Absolute shoelace area of a closed polygon."""
    n = len(points)
    if n < 3:
        return 0.0
    s = 0.0
    for i in range(n):
        a = points[i]
        b = points[(i + 1) % n]
        s += a.x * b.y - b.x * a.y
    return abs(s) / 2.0


def quad_area(points: Sequence[Point2D]) -> float:
    if len(points) != 4:
        raise ValueError(f"quad_area expects 4 points, got {len(points)}")
    return polygon_area(points)


def is_convex(points: Sequence[Point2D]) -> bool:
    n = len(points)
    if n < 3:
        return False
    sign = 0
    for i in range(n):
        p1 = points[i]
        p2 = points[(i + 1) % n]
        p3 = points[(i + 2) % n]
        cross = (p2.x - p1.x) * (p3.y - p2.y) - (p2.y - p1.y) * (p3.x - p2.x)
        if abs(cross) > _CONVEX_TOL:
            s = 1 if cross > 0 else -1
            if sign == 0:
                sign = s
            elif s != sign:
                return False
    return True


def _project(p: Point2D, a: Point2D, b: Point2D) -> Tuple[float, float]:
    """Return (t, len2) for the projection of p onto segment a->b, t clamped to [0, 1]."""
    dx = b.x - a.x
    dy = b.y - a.y
    len2 = dx * dx + dy * dy
    if len2 == 0.0:
        return 0.5, 0.0
    t = ((p.x - a.x) * dx + (p.y - a.y) * dy) / len2
    return max(0.0, min(1.0, t)), len2


def point_to_segment_distance(p: Point2D, a: Point2D, b: Point2D) -> float:
    t, len2 = _project(p, a, b)
    if len2 == 0.0:
        return math.hypot(p.x - a.x, p.y - a.y)
    qx = a.x + t * (b.x - a.x)
    qy = a.y + t * (b.y - a.y)
    return math.hypot(p.x - qx, p.y - qy)


def edge_parameter(p: Point2D, a: Point2D, b: Point2D) -> float:
    """Clamped projection parameter of p on a->b; 0.5 for a zero-length edge."""
    t, _ = _project(p, a, b)
    return t


def lerp_point(a: Point2D, b: Point2D, t: float) -> Point2D:
    return Point2D(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t)


def distance(a: Point2D, b: Point2D) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)
