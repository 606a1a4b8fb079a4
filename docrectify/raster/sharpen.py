# docrectify/raster/sharpen.py
from __future__ import annotations
from typing import Tuple

import cv2
import numpy as np

# Both filters touch interior pixels only (1 px border kept as-is), RGB only;
# alpha is copied through. Flat regions come out unchanged.


_RING = np.array([[1.0, 1.0, 1.0], [1.0, 0.0, 1.0], [1.0, 1.0, 1.0]])


def _neighbour_sum(c: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return (centre, sum of the 8 neighbours) for the interior of c."""
    h, w = c.shape[:2]
    ring = cv2.filter2D(c, cv2.CV_64F, _RING, borderType=cv2.BORDER_REPLICATE)
    return c[1:h - 1, 1:w - 1], ring[1:h - 1, 1:w - 1]


def _finish(raster: np.ndarray, interior: np.ndarray) -> np.ndarray:
    out = raster.copy()
    h, w = raster.shape[:2]
    out[1:h - 1, 1:w - 1, :3] = np.clip(np.floor(interior + 0.5), 0, 255).astype(np.uint8)
    return out


def laplacian_sharpen(raster: np.ndarray, strength: float = 0.2) -> np.ndarray:
    """
    3x3 Laplacian (centre 8, neighbours -1) added back at ``strength``:
        out = c + strength * (8c - sum8)
    """
    h, w = raster.shape[:2]
    if h < 3 or w < 3:
        return raster.copy()
    rgb = raster[:, :, :3].astype(np.float64)
    centre, neigh = _neighbour_sum(rgb)
    lap = 8.0 * centre - neigh
    return _finish(raster, centre + strength * lap)


def unsharp_mask(raster: np.ndarray, strength: float = 0.25) -> np.ndarray:
    """
    Unsharp mask against the 8-neighbour mean:
        out = c + strength * (c - mean8)
    """
    h, w = raster.shape[:2]
    if h < 3 or w < 3:
        return raster.copy()
    rgb = raster[:, :, :3].astype(np.float64)
    centre, neigh = _neighbour_sum(rgb)
    return _finish(raster, centre + strength * (centre - neigh / 8.0))
