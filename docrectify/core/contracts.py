"""
Core contracts and simple data types shared across stages.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np


class Strategy(str, Enum):
    """Which resampling pipeline handles a correction."""
    HOMOGRAPHY_CONSTRAINED = "homography-constrained"
    MESH_MVC = "mesh-mvc"


@dataclass(frozen=True)
class Point2D:
    """A point in raster coordinates (pixels). Stages return new points, never mutate."""
    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (float(self.x), float(self.y))

    @classmethod
    def from_any(cls, obj: Any) -> "Point2D":
        """Accept a Point2D, an (x, y) pair or a {"x": .., "y": ..} mapping."""
        if isinstance(obj, Point2D):
            return obj
        if isinstance(obj, dict):
            return cls(float(obj["x"]), float(obj["y"]))
        x, y = obj
        return cls(float(x), float(y))


def as_points(pts: Sequence[Any]) -> List[Point2D]:
    return [Point2D.from_any(p) for p in pts]


@dataclass(frozen=True)
class EdgeConstraint:
    """
    An extra (non-corner) source point bound to a parametric position on one
    edge of the output rectangle.

    edge: 0=top, 1=right, 2=bottom, 3=left
    param: position along the chosen quad edge, in [0, 1]
    distance: source-space distance from the point to that edge
    """
    src: Point2D
    dst: Point2D
    edge: int
    param: float
    distance: float


@dataclass
class RectEstimate:
    """
    Output size plus the four intermediate corners (TL, TR, BR, BL) the mesh
    warp blends between.
    """
    width: float
    height: float
    corners: List[Point2D]


@dataclass
class CorrectionResult:
    """
    The only object handed to outside consumers (download / print).

    raster: np.ndarray with shape (height, width, 4), dtype uint8, RGBA
    """
    raster: np.ndarray
    width: int
    height: int
    ordered_points: List[Point2D]
    corner_points: Optional[List[Point2D]] = None
    constraints: Optional[List[EdgeConstraint]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def method(self) -> Optional[str]:
        return self.metadata.get("method")
