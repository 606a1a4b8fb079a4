# docrectify/geometry/corners.py
"""
Corner selection for inputs with more than four points, and the edge
constraints built from the points that were not picked as corners.
"""

from __future__ import annotations
from itertools import combinations
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from docrectify.core.contracts import EdgeConstraint, Point2D
from docrectify.geometry.homography import apply_homography, apply_homography_grid, invert_3x3
from docrectify.geometry.primitives import (
    edge_parameter,
    order_points,
    point_to_segment_distance,
    quad_area,
    sort_clockwise,
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------------- #
# Candidate enumeration                                                         #
# ----------------------------------------------------------------------------- #

def _leave_one_out(n: int) -> Iterator[Tuple[int, ...]]:
    for skip in range(n):
        yield tuple(i for i in range(n) if i != skip)


def _exclude_two(n: int) -> Iterator[Tuple[int, ...]]:
    for a in range(n):
        for b in range(a + 1, n):
            yield tuple(i for i in range(n) if i != a and i != b)


def _candidates(n: int) -> Iterator[Tuple[int, ...]]:
    """
    Candidate 4-subsets in the order they are tried; the order decides ties.
      n=5  leave-one-out            (5 trials)
      n=6  choose 2 to exclude      (15 trials)
      else choose 4 of n            (n=8 -> 70 trials, C(n, 4) in general)
    """
    if n == 5:
        return _leave_one_out(n)
    if n == 6:
        return _exclude_two(n)
    return combinations(range(n), 4)


def select_corners(points: Sequence[Point2D]) -> Tuple[List[Point2D], List[Point2D]]:
    """
    Pick the 4 points spanning the largest quadrilateral.

    Each candidate is sorted clockwise before its area is measured, so the
    user's click order cannot produce a bow-tie. A strictly larger area
    replaces the current best, so on exact ties the first candidate wins.

    Returns (corners TL->TR->BR->BL, excluded points in input order).
    Exhaustive, O(n^4); fine for the handful of points a user clicks.
    """
    pts = list(points)
    n = len(pts)
    if n < 4:
        raise ValueError(f"need at least 4 points, got {n}")
    if n == 4:
        return order_points(pts), []

    best_idx: Optional[Tuple[int, ...]] = None
    best_area = -math.inf
    trials = 0
    for idx in _candidates(n):
        trials += 1
        area = quad_area(sort_clockwise([pts[i] for i in idx]))
        if area > best_area:
            best_area = area
            best_idx = idx

    chosen = set(best_idx)
    corners = order_points([pts[i] for i in best_idx])
    excluded = [p for i, p in enumerate(pts) if i not in chosen]
    logger.debug("select_corners n=%d trials=%d area=%.2f excluded=%d", n, trials, best_area, len(excluded))
    return corners, excluded


# ----------------------------------------------------------------------------- #
# Edge constraints                                                              #
# ----------------------------------------------------------------------------- #

def edge_destination(edge: int, t: float, width: float, height: float) -> Point2D:
    """Point on the output rectangle edge; bottom and left run backwards (BR->BL, BL->TL)."""
    if edge == 0:
        return Point2D(t * width, 0.0)
    if edge == 1:
        return Point2D(width, t * height)
    if edge == 2:
        return Point2D((1.0 - t) * width, height)
    if edge == 3:
        return Point2D(0.0, (1.0 - t) * height)
    raise ValueError(f"edge index must be 0..3, got {edge}")


def build_edge_constraints(
    excluded: Sequence[Point2D],
    corners: Sequence[Point2D],
    width: float,
    height: float,
) -> List[EdgeConstraint]:
    if len(corners) != 4:
        raise ValueError(f"corners must hold 4 points, got {len(corners)}")
    out: List[EdgeConstraint] = []
    for p in excluded:
        best_edge = 0
        best_d = math.inf
        for e in range(4):
            a, b = corners[e], corners[(e + 1) % 4]
            d = point_to_segment_distance(p, a, b)
            if d < best_d:
                best_d = d
                best_edge = e
        a, b = corners[best_edge], corners[(best_edge + 1) % 4]
        t = edge_parameter(p, a, b)
        out.append(EdgeConstraint(
            src=p,
            dst=edge_destination(best_edge, t, width, height),
            edge=best_edge,
            param=t,
            distance=best_d,
        ))
    return out


# ----------------------------------------------------------------------------- #
# Constrained mapping                                                           #
# ----------------------------------------------------------------------------- #

_CONSTRAINT_DEFAULTS: Dict = {
    "influence_frac": 0.25,
    "falloff": 1000.0,
    "blend_gain": 0.5,
    "error_space": "destination",
}
ERROR_SPACES = ("destination", "source")


def _constraint_params(cfg: Optional[Dict]) -> Tuple[float, float, float, str]:
    c = dict(_CONSTRAINT_DEFAULTS)
    if cfg:
        c.update(cfg.get("constraints", cfg))
    space = c["error_space"]
    if space not in ERROR_SPACES:
        raise ValueError(f"constraints.error_space must be one of {ERROR_SPACES}, got {space!r}")
    return float(c["influence_frac"]), float(c["falloff"]), float(c["blend_gain"]), space


def constraint_errors(
    inverse: np.ndarray,
    constraints: Sequence[EdgeConstraint],
    forward: Optional[np.ndarray] = None,
    space: str = "destination",
) -> List[Tuple[float, float]]:
    """
    Per-constraint mismatch of the global warp.

    destination: H(src) - dst, where the forward homography sends the
                 constraint's source vs. its assigned destination
    source:      H^-1(dst) - src, the same mismatch seen from the source side

    ``forward`` defaults to ``invert_3x3(inverse)``.
    """
    errs = []
    if space == "source":
        for c in constraints:
            q = apply_homography(inverse, c.dst)
            errs.append((q.x - c.src.x, q.y - c.src.y))
        return errs
    if forward is None:
        forward = invert_3x3(inverse)
    for c in constraints:
        q = apply_homography(forward, c.src)
        errs.append((q.x - c.dst.x, q.y - c.dst.y))
    return errs


def apply_constrained_mapping(
    x: float,
    y: float,
    inverse: np.ndarray,
    constraints: Sequence[EdgeConstraint],
    width: float,
    height: float,
    cfg: Optional[Dict] = None,
    forward: Optional[np.ndarray] = None,
) -> Point2D:
    """
    Destination pixel (x, y) -> source location. The inverse homography gives
    the base position; constraints whose destination lies within the
    influence radius subtract their blended mismatch (see constraint_errors)
    with weight 1 / (1 + d^2 / falloff).
    """
    base = apply_homography(inverse, Point2D(float(x), float(y)))
    if not constraints:
        return base
    frac, falloff, gain, space = _constraint_params(cfg)
    radius = frac * min(width, height)

    total = 0.0
    cx = cy = 0.0
    for c, (ex, ey) in zip(constraints, constraint_errors(inverse, constraints, forward, space)):
        d = math.hypot(x - c.dst.x, y - c.dst.y)
        if d >= radius:
            continue
        w = 1.0 / (1.0 + (d * d) / falloff)
        total += w
        cx += w * ex
        cy += w * ey
    if total <= 0.0:
        return base
    blend = min(1.0, total * gain)
    return Point2D(base.x - blend * cx / total, base.y - blend * cy / total)


def apply_constrained_mapping_grid(
    xs: np.ndarray,
    ys: np.ndarray,
    inverse: np.ndarray,
    constraints: Sequence[EdgeConstraint],
    width: float,
    height: float,
    cfg: Optional[Dict] = None,
    forward: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Array form of apply_constrained_mapping."""
    bx, by = apply_homography_grid(inverse, xs, ys)
    if not constraints:
        return bx, by
    frac, falloff, gain, space = _constraint_params(cfg)
    radius = frac * min(width, height)

    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    total = np.zeros_like(bx)
    cx = np.zeros_like(bx)
    cy = np.zeros_like(bx)
    for c, (ex, ey) in zip(constraints, constraint_errors(inverse, constraints, forward, space)):
        d2 = (xs - c.dst.x) ** 2 + (ys - c.dst.y) ** 2
        w = np.where(np.sqrt(d2) < radius, 1.0 / (1.0 + d2 / falloff), 0.0)
        total += w
        cx += w * ex
        cy += w * ey

    active = total > 0.0
    safe = np.where(active, total, 1.0)
    blend = np.minimum(1.0, total * gain)
    out_x = np.where(active, bx - blend * cx / safe, bx)
    out_y = np.where(active, by - blend * cy / safe, by)
    return out_x, out_y
