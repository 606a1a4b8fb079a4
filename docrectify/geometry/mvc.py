# docrectify/geometry/mvc.py
"""
Mean-value coordinates (generalised barycentric weights) for simple polygons.

For a sample point p and polygon vertices v_i, with r_i = |v_i - p| and
alpha_i the angle at p between v_i and v_{i+1}:

    w_i = (tan(alpha_{i-1} / 2) + tan(alpha_i / 2)) / r_i

The mapped position is sum(w_i * v_i) / sum(w_i). It is expressed in the
polygon's own coordinate space and is used as a proxy sampling location.
"""

from __future__ import annotations
from typing import Sequence, Tuple

import numpy as np

from docrectify.core.contracts import Point2D

_HIT_EPS = 1e-6
_SUM_EPS = 1e-10


def map_points_mvc(xs: np.ndarray, ys: np.ndarray, polygon: Sequence[Point2D]) -> Tuple[np.ndarray, np.ndarray]:
    """Map arrays of sample points; returns (xs, ys) with the same shape."""
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    n = len(polygon)
    if n < 3:
        return xs.copy(), ys.copy()

    shape = xs.shape
    px = xs.reshape(-1)
    py = ys.reshape(-1)
    vx = np.array([p.x for p in polygon], dtype=np.float64)
    vy = np.array([p.y for p in polygon], dtype=np.float64)

    # (n, S) direction vectors from sample to each vertex
    dx = vx[:, None] - px[None, :]
    dy = vy[:, None] - py[None, :]
    r = np.hypot(dx, dy)

    hit = r < _HIT_EPS
    any_hit = hit.any(axis=0)
    r = np.where(hit, 1.0, r)

    dx_next, dy_next, r_next = np.roll(dx, -1, axis=0), np.roll(dy, -1, axis=0), np.roll(r, -1, axis=0)
    dx_prev, dy_prev, r_prev = np.roll(dx, 1, axis=0), np.roll(dy, 1, axis=0), np.roll(r, 1, axis=0)

    cos_a = np.clip((dx * dx_next + dy * dy_next) / (r * r_next), -1.0, 1.0)
    cos_b = np.clip((dx_prev * dx + dy_prev * dy) / (r_prev * r), -1.0, 1.0)

    w = (np.tan(np.arccos(cos_a) * 0.5) + np.tan(np.arccos(cos_b) * 0.5)) / r
    total = w.sum(axis=0)

    degenerate = total < _SUM_EPS
    safe_total = np.where(degenerate, 1.0, total)
    out_x = (w * vx[:, None]).sum(axis=0) / safe_total
    out_y = (w * vy[:, None]).sum(axis=0) / safe_total

    out_x = np.where(degenerate, vx.mean(), out_x)
    out_y = np.where(degenerate, vy.mean(), out_y)

    if any_hit.any():
        first = np.argmax(hit, axis=0)
        out_x = np.where(any_hit, vx[first], out_x)
        out_y = np.where(any_hit, vy[first], out_y)

    return out_x.reshape(shape), out_y.reshape(shape)


def map_point_mvc(x: float, y: float, width: float, height: float, polygon: Sequence[Point2D]) -> Point2D:
    """
    Map one point against ``polygon``. ``width`` and ``height`` are part of the
    historical call signature and do not affect the result.
    """
    if len(polygon) < 3:
        return Point2D(float(x), float(y))
    mx, my = map_points_mvc(np.array([x]), np.array([y]), polygon)
    return Point2D(float(mx[0]), float(my[0]))
