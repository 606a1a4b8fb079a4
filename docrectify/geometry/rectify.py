# docrectify/geometry/rectify.py
"""
Full-frame inverse warp of a user-selected region into a rectangular image.

Two pipelines, chosen explicitly through ``strategy``:

  homography-constrained
      Points keep the caller's order. Four points are the corners; with more,
      the four spanning the largest quad are the corners and the rest become
      edge constraints. Every destination pixel goes through the inverse
      homography (plus the local constraint correction), is sampled
      bilinearly, and the frame gets an unsharp mask.

  mesh-mvc
      Points are re-sorted by centroid angle. An intermediate quad is
      estimated (edge averages / farthest corners / PCA box), each
      destination pixel is blended bilinearly between its corners, pulled
      into the original polygon with mean-value coordinates, sampled, and
      the frame gets a Laplacian sharpen.

The two give different pixels for the same input.
"""

from __future__ import annotations
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import math
import time

import numpy as np

from docrectify.core.config import merge_cfg
from docrectify.core.contracts import CorrectionResult, EdgeConstraint, Point2D, RectEstimate, Strategy, as_points
from docrectify.core.status import ERROR, NEUTRAL, SUCCESS, StatusSink, resolve_sink
from docrectify.geometry.corners import apply_constrained_mapping_grid, build_edge_constraints, select_corners
from docrectify.geometry.estimate import estimate_document_rectangle
from docrectify.geometry.homography import apply_homography_grid, find_homography
from docrectify.geometry.mvc import map_points_mvc
from docrectify.geometry.primitives import is_convex, order_points, quad_area, sort_clockwise
from docrectify.raster.sample import bilinear_sample_grid, to_rgba
from docrectify.raster.sharpen import laplacian_sharpen, unsharp_mask

logger = logging.getLogger(__name__)

MIN_POINTS = 4
INSUFFICIENT_POINTS_MSG = "Please select at least 4 points for perspective correction."


# ----------------------------------------------------------------------------- #
# Sizing / iteration helpers                                                    #
# ----------------------------------------------------------------------------- #

def compute_target_size(corners: Sequence[Point2D], min_size: int = 10) -> Tuple[int, int]:
    """(W, H) from the bounding box of the corner quad, never below ``min_size``."""
    xs = [p.x for p in corners]
    ys = [p.y for p in corners]
    w = max(int(min_size), int(round(max(xs) - min(xs))))
    h = max(int(min_size), int(round(max(ys) - min(ys))))
    return w, h


def destination_rect(width: float, height: float) -> List[Point2D]:
    return [Point2D(0.0, 0.0), Point2D(width, 0.0), Point2D(width, height), Point2D(0.0, height)]


def _row_bands(width: int, height: int, every: int) -> Iterator[Tuple[int, int]]:
    rows = max(1, int(every) // max(1, width))
    for y0 in range(0, height, rows):
        yield y0, min(height, y0 + rows)


def _progress(status: StatusSink, done: int, total: int) -> None:
    status(f"Processing: {int(math.floor(done * 100 / max(1, total)))}%", NEUTRAL)


def _opaque(samples: np.ndarray) -> np.ndarray:
    samples[..., 3] = 255
    return samples


# ----------------------------------------------------------------------------- #
# Pipeline (b): homography (+ edge constraints)                                 #
# ----------------------------------------------------------------------------- #

def warp_homography(
    source: np.ndarray,
    inverse: np.ndarray,
    width: int,
    height: int,
    *,
    constraints: Optional[Sequence[EdgeConstraint]] = None,
    forward: Optional[np.ndarray] = None,
    cfg: Optional[Dict] = None,
    status: Optional[StatusSink] = None,
) -> np.ndarray:
    """
    Inverse-warp ``source`` into a (height, width, 4) raster; no sharpening.
    ``forward`` (source -> destination) is only read by the constraint correction.
    """
    cfg = merge_cfg(cfg)
    status = resolve_sink(status)
    eps = float(cfg.get("sample_epsilon", 1e-6))
    every = int(cfg["progress"]["homography_every"])

    out = np.empty((height, width, 4), np.uint8)
    xs_row = np.arange(width, dtype=np.float64)
    total = width * height
    done = 0
    for y0, y1 in _row_bands(width, height, every):
        gx, gy = np.meshgrid(xs_row, np.arange(y0, y1, dtype=np.float64))
        if constraints:
            sx, sy = apply_constrained_mapping_grid(gx, gy, inverse, constraints, width, height, cfg,
                                                    forward=forward)
        else:
            sx, sy = apply_homography_grid(inverse, gx, gy)
        out[y0:y1] = _opaque(bilinear_sample_grid(source, sx, sy, eps))
        done += (y1 - y0) * width
        _progress(status, done, total)
    return out


def _correct_homography(source: np.ndarray, pts: List[Point2D], cfg: Dict, status: StatusSink) -> CorrectionResult:
    solver = cfg.get("solver", "nullspace")
    if len(pts) == 4:
        corners, excluded = order_points(pts), []
    else:
        corners, excluded = select_corners(pts)

    width, height = compute_target_size(corners, cfg.get("min_output_size", 10))
    rect = destination_rect(width, height)
    inverse = find_homography(rect, corners, solver=solver)   # destination -> source, used per pixel
    forward = find_homography(corners, rect, solver=solver)
    constraints = build_edge_constraints(excluded, corners, width, height) if excluded else []

    if cfg.get("debug"):
        logger.info("[rectify] homography solver=%s size=%dx%d corners=%s constraints=%d",
                    solver, width, height, [p.as_tuple() for p in corners], len(constraints))

    raster = warp_homography(source, inverse, width, height, constraints=constraints, forward=forward,
                             cfg=cfg, status=status)
    if cfg["sharpen"].get("enabled", True):
        raster = unsharp_mask(raster, float(cfg["sharpen"]["unsharp_strength"]))

    method = "homography-constrained" if constraints else "homography"
    return CorrectionResult(
        raster=raster,
        width=width,
        height=height,
        ordered_points=pts,
        corner_points=corners,
        constraints=constraints or None,
        metadata={
            "method": method,
            "strategy": Strategy.HOMOGRAPHY_CONSTRAINED.value,
            "solver": solver,
            "homography": forward.tolist(),
            "corner_area": quad_area(corners),
            "is_convex": is_convex(corners),
        },
    )


# ----------------------------------------------------------------------------- #
# Pipeline (a): bilinear mesh + mean-value coordinates                          #
# ----------------------------------------------------------------------------- #

def warp_mesh_mvc(
    source: np.ndarray,
    polygon: Sequence[Point2D],
    estimate: RectEstimate,
    *,
    cfg: Optional[Dict] = None,
    status: Optional[StatusSink] = None,
) -> np.ndarray:
    """Mesh warp into a raster of round(estimate.width) x round(estimate.height); no sharpening."""
    cfg = merge_cfg(cfg)
    status = resolve_sink(status)
    eps = float(cfg.get("sample_epsilon", 1e-6))
    every = int(cfg["progress"]["mesh_every"])

    width = max(1, int(round(estimate.width)))
    height = max(1, int(round(estimate.height)))
    c = estimate.corners

    out = np.empty((height, width, 4), np.uint8)
    u_row = np.arange(width, dtype=np.float64) / (width - 1) if width > 1 else np.full(width, 0.5)
    total = width * height
    done = 0
    for y0, y1 in _row_bands(width, height, every):
        ys = np.arange(y0, y1, dtype=np.float64)
        v_col = ys / (height - 1) if height > 1 else np.full(len(ys), 0.5)
        u, v = np.meshgrid(u_row, v_col)

        px = (1 - u) * (1 - v) * c[0].x + u * (1 - v) * c[1].x + u * v * c[2].x + (1 - u) * v * c[3].x
        py = (1 - u) * (1 - v) * c[0].y + u * (1 - v) * c[1].y + u * v * c[2].y + (1 - u) * v * c[3].y

        sx, sy = map_points_mvc(px, py, polygon)
        out[y0:y1] = _opaque(bilinear_sample_grid(source, sx, sy, eps))
        done += (y1 - y0) * width
        _progress(status, done, total)
    return out


def _correct_mesh(source: np.ndarray, pts: List[Point2D], cfg: Dict, status: StatusSink) -> CorrectionResult:
    polygon = sort_clockwise(pts)
    estimate = estimate_document_rectangle(polygon, float(cfg.get("min_output_size", 10)))

    if cfg.get("debug"):
        logger.info("[rectify] mesh size=%.1fx%.1f corners=%s", estimate.width, estimate.height,
                    [p.as_tuple() for p in estimate.corners])

    raster = warp_mesh_mvc(source, polygon, estimate, cfg=cfg, status=status)
    if cfg["sharpen"].get("enabled", True):
        raster = laplacian_sharpen(raster, float(cfg["sharpen"]["laplacian_strength"]))

    h, w = raster.shape[:2]
    return CorrectionResult(
        raster=raster,
        width=w,
        height=h,
        ordered_points=polygon,
        corner_points=list(estimate.corners),
        constraints=None,
        metadata={
            "method": "document-warp",
            "strategy": Strategy.MESH_MVC.value,
            "is_convex": is_convex(polygon),
        },
    )


# ----------------------------------------------------------------------------- #
# Entry point                                                                   #
# ----------------------------------------------------------------------------- #

def rectify(
    raster: np.ndarray,
    points: Sequence,
    *,
    strategy: Optional[str] = None,
    cfg: Optional[Dict] = None,
    status: Optional[StatusSink] = None,
) -> Optional[CorrectionResult]:
    """
    Correct the region outlined by ``points`` (4 or more, raster coordinates).

    Depends only on (raster, points, strategy, cfg). Problems are reported
    to ``status`` and None is returned; nothing is raised past this call.
    """
    cfg = merge_cfg(cfg)
    status = resolve_sink(status)

    if points is None or len(points) < MIN_POINTS:
        status(INSUFFICIENT_POINTS_MSG, ERROR)
        return None

    try:
        chosen = Strategy(strategy or cfg.get("strategy", Strategy.HOMOGRAPHY_CONSTRAINED.value))
    except ValueError:
        status(f"Error: unknown strategy {strategy or cfg.get('strategy')!r}", ERROR)
        return None

    t0 = time.perf_counter()
    try:
        source = to_rgba(raster)
        pts = as_points(points)
        if chosen is Strategy.MESH_MVC:
            result = _correct_mesh(source, pts, cfg, status)
        else:
            result = _correct_homography(source, pts, cfg, status)
    except Exception as e:
        logger.exception("rectify_failed strategy=%s points=%d", chosen.value, len(points))
        status(f"Error: {str(e) or 'Please try adjusting your points.'}", ERROR)
        return None

    dt = int((time.perf_counter() - t0) * 1000)
    result.metadata["point_count"] = len(pts)
    result.metadata["time_ms"] = dt
    logger.info("rectify_done strategy=%s method=%s size=%dx%d points=%d timeMs=%d",
                chosen.value, result.method, result.width, result.height, len(pts), dt)

    if chosen is Strategy.MESH_MVC:
        status(f"Document correction applied ({result.width}×{result.height})", SUCCESS)
    else:
        status(f"Perspective correction applied! Corrected area: {result.width}×{result.height} pixels.",
               SUCCESS)
    return result
