# docrectify/raster/sample.py
"""
Raster helpers: RGBA normalisation and bilinear sampling with white fill
outside the source image.
"""

from __future__ import annotations
from typing import Tuple

import numpy as np

WHITE = (255, 255, 255, 255)


def to_rgba(raster: np.ndarray) -> np.ndarray:
    """Return an (H, W, 4) uint8 view/copy; grey and RGB inputs become opaque RGBA."""
    arr = np.asarray(raster)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 2:
        arr = np.repeat(arr[:, :, None], 3, axis=2)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"raster must be (H, W), (H, W, 3) or (H, W, 4), got {arr.shape}")
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


def blank_raster(width: int, height: int) -> np.ndarray:
    return np.full((height, width, 4), 255, np.uint8)


def _round_half_up(v: np.ndarray) -> np.ndarray:
    return np.floor(v + 0.5)


def bilinear_sample_grid(
    raster: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    eps: float = 1e-6,
) -> np.ndarray:
    """
    Sample an (H, W, 4) uint8 raster at fractional coordinates.

    Coordinates with x < -eps, x >= W, y < -eps or y >= H (or NaN) are
    outside the image and come back opaque white. The rest are clamped to
    [0, dim - 1.001] so the 4-tap read never runs past the last row/column.

    Returns an array of shape xs.shape + (4,), dtype uint8.
    """
    h, w = raster.shape[:2]
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)

    with np.errstate(invalid="ignore"):
        outside = ~((xs >= -eps) & (xs < w) & (ys >= -eps) & (ys < h))

    cx = np.clip(np.where(outside, 0.0, xs), 0.0, max(0.0, w - 1.001))
    cy = np.clip(np.where(outside, 0.0, ys), 0.0, max(0.0, h - 1.001))

    x1 = np.floor(cx).astype(np.intp)
    y1 = np.floor(cy).astype(np.intp)
    x2 = np.minimum(x1 + 1, w - 1)
    y2 = np.minimum(y1 + 1, h - 1)
    dx = (cx - x1)[..., None]
    dy = (cy - y1)[..., None]

    p11 = raster[y1, x1].astype(np.float64)
    p12 = raster[y1, x2].astype(np.float64)
    p21 = raster[y2, x1].astype(np.float64)
    p22 = raster[y2, x2].astype(np.float64)

    top = p11 + (p12 - p11) * dx
    bottom = p21 + (p22 - p21) * dx
    value = _round_half_up(top + (bottom - top) * dy)

    out = np.clip(value, 0, 255).astype(np.uint8)
    out[outside] = WHITE
    return out


def bilinear_sample(raster: np.ndarray, x: float, y: float, eps: float = 1e-6) -> Tuple[int, int, int, int]:
    px = bilinear_sample_grid(raster, np.array([x]), np.array([y]), eps)[0]
    return tuple(int(v) for v in px)  # type: ignore[return-value]
