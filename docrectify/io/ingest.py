"""
Simple I/O helpers for reading source images (as RGBA) and point lists.
"""

from __future__ import annotations
import json
from typing import List

import cv2
import numpy as np

from docrectify.core.contracts import Point2D, as_points


def load_image_rgba(path: str) -> np.ndarray:
    """
    Load an image from disk as (H, W, 4) uint8 RGBA.
    Raises FileNotFoundError if not found.
    """
    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise FileNotFoundError(f"Could not read image at: {path}")
    return bgr_to_rgba(img)


def bgr_to_rgba(img: np.ndarray) -> np.ndarray:
    """OpenCV channel order (gray / BGR / BGRA) to RGBA."""
    if img.dtype != np.uint8:
        img = cv2.convertScaleAbs(img)
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)


def load_points(path: str) -> List[Point2D]:
    """
    Load points from JSON: [[x, y], ...] or [{"x": .., "y": ..}, ...],
    optionally wrapped as {"points": [...]}.
    """
    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("points", [])
    return as_points(data)


def parse_points(text: str) -> List[Point2D]:
    """Parse "x,y x,y ..." (whitespace or ';' separated pairs)."""
    pairs = [tok for tok in text.replace(";", " ").split() if tok]
    out = []
    for tok in pairs:
        x, y = tok.split(",")
        out.append(Point2D(float(x), float(y)))
    return out
