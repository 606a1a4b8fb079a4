# docrectify/geometry/homography.py
"""
Projective (homography) estimation from exactly four point correspondences.

Two solvers are provided:

  direct     8 unknowns with h9 fixed to 1, solved as A·h = b
  nullspace  the homogeneous 8x9 DLT system, row-reduced; the first column
             without a pivot is the free variable, fixed to 1

Both return a 3x3 float64 matrix M with M·[sx, sy, 1]^T ∝ [dx, dy, 1]^T.
"""

from __future__ import annotations
from typing import List, Sequence, Tuple
import logging

import numpy as np

from docrectify.core.contracts import Point2D

logger = logging.getLogger(__name__)

_PIVOT_EPS = 1e-12
_DET_EPS = 1e-10
_W_EPS = 1e-10


class SingularSystemError(ValueError):
    """Raised when Gaussian elimination meets a pivot below tolerance."""


def _dlt_rows(src: Sequence[Point2D], dst: Sequence[Point2D]) -> List[List[float]]:
    if len(src) != 4 or len(dst) != 4:
        raise ValueError(
            f"homography needs exactly 4 correspondences, got {len(src)} -> {len(dst)}"
        )
    rows: List[List[float]] = []
    for s, d in zip(src, dst):
        sx, sy = float(s.x), float(s.y)
        dx, dy = float(d.x), float(d.y)
        rows.append([sx, sy, 1.0, 0.0, 0.0, 0.0, -dx * sx, -dx * sy, -dx])
        rows.append([0.0, 0.0, 0.0, sx, sy, 1.0, -dy * sx, -dy * sy, -dy])
    return rows


def solve_linear_system(A: Sequence[Sequence[float]], b: Sequence[float]) -> List[float]:
    """
    Solve a square system A·x = b by Gaussian elimination with partial
    pivoting. Works on an augmented copy; inputs are left untouched.
    """
    n = len(A)
    aug = [list(map(float, row)) + [float(b[i])] for i, row in enumerate(A)]

    for i in range(n):
        pivot = i
        for r in range(i + 1, n):
            if abs(aug[r][i]) > abs(aug[pivot][i]):
                pivot = r
        if pivot != i:
            aug[i], aug[pivot] = aug[pivot], aug[i]
        if abs(aug[i][i]) < _PIVOT_EPS:
            raise SingularSystemError("Matrix is singular or poorly conditioned for pivoting.")
        for r in range(i + 1, n):
            factor = aug[r][i] / aug[i][i]
            if factor == 0.0:
                continue
            for c in range(i, n + 1):
                aug[r][c] -= factor * aug[i][c]

    x = [0.0] * n
    for i in reversed(range(n)):
        acc = aug[i][n]
        for j in range(i + 1, n):
            acc -= aug[i][j] * x[j]
        x[i] = acc / aug[i][i]
    return x


def homography_direct(src: Sequence[Point2D], dst: Sequence[Point2D]) -> np.ndarray:
    """Corner-fit variant: the 8x8 inhomogeneous system with h9 = 1."""
    rows = _dlt_rows(src, dst)
    A = [row[:8] for row in rows]
    b = [-row[8] for row in rows]
    h = solve_linear_system(A, b)
    return np.array(h + [1.0], dtype=np.float64).reshape(3, 3)


def nullspace_vector(rows: Sequence[Sequence[float]], eps: float = _PIVOT_EPS) -> List[float]:
    """
    One null-space vector of an m x n matrix (m < n expected).

    Row-echelon reduction with partial pivoting; columns whose best pivot is
    below eps are skipped. The first column left without a pivot becomes the
    free variable (= 1), any other free columns are 0, pivot variables come
    from back-substitution. The result is divided by its largest magnitude.
    If every column got a pivot the system is full rank and [0, ..., 0, 1]
    is returned.
    """
    M = [list(map(float, r)) for r in rows]
    m = len(M)
    n = len(M[0]) if m else 0

    pivots: List[Tuple[int, int]] = []  # (row, col)
    row = 0
    for col in range(n):
        if row >= m:
            break
        best = row
        for r in range(row + 1, m):
            if abs(M[r][col]) > abs(M[best][col]):
                best = r
        if abs(M[best][col]) < eps:
            continue
        if best != row:
            M[row], M[best] = M[best], M[row]
        inv = 1.0 / M[row][col]
        M[row] = [v * inv for v in M[row]]
        for r in range(row + 1, m):
            factor = M[r][col]
            if factor != 0.0:
                M[r] = [M[r][c] - factor * M[row][c] for c in range(n)]
        pivots.append((row, col))
        row += 1

    pivot_cols = {c for _, c in pivots}
    free = next((c for c in range(n) if c not in pivot_cols), None)
    if free is None:
        h = [0.0] * n
        h[-1] = 1.0
        return h

    h = [0.0] * n
    h[free] = 1.0
    for r, c in reversed(pivots):
        acc = 0.0
        for j in range(c + 1, n):
            acc += M[r][j] * h[j]
        h[c] = -acc

    scale = max(abs(v) for v in h)
    return [v / scale for v in h]


def homography_nullspace(src: Sequence[Point2D], dst: Sequence[Point2D]) -> np.ndarray:
    h = nullspace_vector(_dlt_rows(src, dst))
    return np.array(h, dtype=np.float64).reshape(3, 3)


def find_homography(
    src: Sequence[Point2D],
    dst: Sequence[Point2D],
    solver: str = "nullspace",
) -> np.ndarray:
    """
    Map src -> dst. A singular direct system degrades to the identity matrix
    (unwarped passthrough) instead of propagating NaNs.
    """
    if solver == "nullspace":
        return homography_nullspace(src, dst)
    if solver == "direct":
        try:
            return homography_direct(src, dst)
        except SingularSystemError as e:
            logger.warning("homography_degenerate solver=direct err=%s -> identity", e)
            return np.eye(3, dtype=np.float64)
    raise ValueError(f"Unknown homography solver: {solver!r}")


def invert_3x3(M: np.ndarray) -> np.ndarray:
    """Cofactor inverse; near-singular input returns the identity."""
    m = np.asarray(M, dtype=np.float64)
    det = (
        m[0, 0] * (m[1, 1] * m[2, 2] - m[1, 2] * m[2, 1])
        - m[0, 1] * (m[1, 0] * m[2, 2] - m[1, 2] * m[2, 0])
        + m[0, 2] * (m[1, 0] * m[2, 1] - m[1, 1] * m[2, 0])
    )
    if abs(det) < _DET_EPS:
        logger.debug("invert_3x3 det=%.3g below tolerance -> identity", det)
        return np.eye(3, dtype=np.float64)

    inv_det = 1.0 / det
    return inv_det * np.array(
        [
            [
                m[1, 1] * m[2, 2] - m[1, 2] * m[2, 1],
                -(m[0, 1] * m[2, 2] - m[0, 2] * m[2, 1]),
                m[0, 1] * m[1, 2] - m[0, 2] * m[1, 1],
            ],
            [
                -(m[1, 0] * m[2, 2] - m[1, 2] * m[2, 0]),
                m[0, 0] * m[2, 2] - m[0, 2] * m[2, 0],
                -(m[0, 0] * m[1, 2] - m[0, 2] * m[1, 0]),
            ],
            [
                m[1, 0] * m[2, 1] - m[1, 1] * m[2, 0],
                -(m[0, 0] * m[2, 1] - m[0, 1] * m[2, 0]),
                m[0, 0] * m[1, 1] - m[0, 1] * m[1, 0],
            ],
        ],
        dtype=np.float64,
    )


def apply_homography(M: np.ndarray, p: Point2D) -> Point2D:
    w = M[2, 0] * p.x + M[2, 1] * p.y + M[2, 2]
    if abs(w) < _W_EPS:
        return p
    x = (M[0, 0] * p.x + M[0, 1] * p.y + M[0, 2]) / w
    y = (M[1, 0] * p.x + M[1, 1] * p.y + M[1, 2]) / w
    return Point2D(float(x), float(y))


def apply_homography_grid(M: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Array form of apply_homography; entries with |w| < eps pass through."""
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    w = M[2, 0] * xs + M[2, 1] * ys + M[2, 2]
    bad = np.abs(w) < _W_EPS
    safe_w = np.where(bad, 1.0, w)
    tx = (M[0, 0] * xs + M[0, 1] * ys + M[0, 2]) / safe_w
    ty = (M[1, 0] * xs + M[1, 1] * ys + M[1, 2]) / safe_w
    return np.where(bad, xs, tx), np.where(bad, ys, ty)
