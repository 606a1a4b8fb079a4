# docrectify/geometry/estimate.py
"""
Output-rectangle estimation for the mesh warp. Each strategy returns the
output width/height and the four intermediate corners (TL, TR, BR, BL) the
destination grid is blended between.
"""

from __future__ import annotations
from typing import Sequence
import math

import numpy as np

from docrectify.core.contracts import Point2D, RectEstimate
from docrectify.geometry.primitives import centroid, distance, sort_clockwise

_MIN_SIDE = 10.0


def estimate_from_quad(points: Sequence[Point2D], min_side: float = _MIN_SIDE) -> RectEstimate:
    """Opposite edges should end up equal, so average them. Corners are the input quad."""
    pts = list(points)
    lengths = [distance(pts[i], pts[(i + 1) % 4]) for i in range(4)]
    width = (lengths[0] + lengths[2]) / 2.0
    height = (lengths[1] + lengths[3]) / 2.0
    return RectEstimate(max(width, min_side), max(height, min_side), pts)


def estimate_from_bent_document(points: Sequence[Point2D], min_side: float = _MIN_SIDE) -> RectEstimate:
    """
    Six points usually mean four corners plus one mid-edge point on each long
    side of a curved page: keep the four farthest from the centroid.
    """
    pts = list(points)
    c = centroid(pts)
    ranked = sorted(range(len(pts)), key=lambda i: math.hypot(pts[i].x - c.x, pts[i].y - c.y), reverse=True)
    keep = sorted(ranked[:4])
    tl, tr, br, bl = sort_clockwise([pts[i] for i in keep])

    width = (distance(tl, tr) + distance(bl, br)) / 2.0
    height = (distance(tl, bl) + distance(tr, br)) / 2.0
    return RectEstimate(max(width, min_side), max(height, min_side), [tl, tr, br, bl])


def estimate_from_point_cloud(points: Sequence[Point2D]) -> RectEstimate:
    """PCA-oriented bounding box of the whole point cloud."""
    xy = np.array([p.as_tuple() for p in points], dtype=np.float64)
    cx, cy = xy.mean(axis=0)
    d = xy - (cx, cy)
    xx = float((d[:, 0] * d[:, 0]).mean())
    xy_ = float((d[:, 0] * d[:, 1]).mean())
    yy = float((d[:, 1] * d[:, 1]).mean())

    angle = 0.5 * math.atan2(2.0 * xy_, xx - yy)
    cos, sin = math.cos(angle), math.sin(angle)

    rx = d[:, 0] * cos + d[:, 1] * sin
    ry = -d[:, 0] * sin + d[:, 1] * cos
    min_x, max_x = float(rx.min()), float(rx.max())
    min_y, max_y = float(ry.min()), float(ry.max())

    box = [(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)]
    corners = [Point2D(bx * cos - by * sin + cx, bx * sin + by * cos + cy) for bx, by in box]
    return RectEstimate(max_x - min_x, max_y - min_y, corners)


def estimate_document_rectangle(points: Sequence[Point2D], min_side: float = _MIN_SIDE) -> RectEstimate:
    n = len(points)
    if n == 4:
        return estimate_from_quad(points, min_side)
    if n == 6:
        return estimate_from_bent_document(points, min_side)
    return estimate_from_point_cloud(points)
