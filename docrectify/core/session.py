"""
Point-editing session state, passed explicitly to UI handlers.

The engine never reads this object; a front end hands ``session.points`` to
``rectify()``.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import math

from docrectify.core.contracts import Point2D

MODES = ("add", "move", "delete")
HIT_RADIUS_PX = 15.0


@dataclass
class EditSession:
    image_size: Tuple[int, int]            # (width, height) of the source raster
    display_scale: float = 1.0             # raster px per displayed px
    points: List[Point2D] = field(default_factory=list)
    mode: str = "add"
    selected_index: int = -1
    dragging: bool = False

    @property
    def can_transform(self) -> bool:
        return len(self.points) >= 4

    @property
    def hit_radius(self) -> float:
        return HIT_RADIUS_PX * self.display_scale

    def set_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {mode!r}")
        self.mode = mode
        self.dragging = False

    def hit_test(self, x: float, y: float) -> Optional[int]:
        """Index of the first point within the hit radius, else None."""
        r = self.hit_radius
        for i, p in enumerate(self.points):
            if math.hypot(x - p.x, y - p.y) < r:
                return i
        return None

    def press(self, x: float, y: float) -> None:
        idx = self.hit_test(x, y)
        if idx is not None and self.mode == "delete":
            del self.points[idx]
            self.selected_index = -1
            return
        if idx is not None and self.mode == "move":
            self.selected_index = idx
            self.dragging = True
            return
        if self.mode == "add":
            self.points.append(Point2D(float(x), float(y)))
            self.selected_index = len(self.points) - 1

    def drag(self, x: float, y: float) -> None:
        if self.mode != "move" or not self.dragging or self.selected_index < 0:
            return
        w, h = self.image_size
        cx = max(0.0, min(float(w), float(x)))
        cy = max(0.0, min(float(h), float(y)))
        self.points[self.selected_index] = Point2D(cx, cy)

    def release(self) -> None:
        self.dragging = False

    def reset(self) -> None:
        self.points = []
        self.selected_index = -1
        self.dragging = False
