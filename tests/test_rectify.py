"""
Pytest for the end-to-end rectification pipelines.
These tests generate synthetic images on the fly, so no test assets are required.
"""
from __future__ import annotations

import cv2
import numpy as np
import pytest

from docrectify.core.contracts import CorrectionResult, Point2D, Strategy
from docrectify.core.status import ERROR, NEUTRAL, SUCCESS, RecordingStatus
from docrectify.geometry.rectify import (
    INSUFFICIENT_POINTS_MSG,
    compute_target_size,
    rectify,
    warp_homography,
)

COLOR = (30, 120, 200, 255)

# ---------- Utilities to build synthetic scenes ---------- #

def _flat(w: int, h: int, rgba=COLOR) -> np.ndarray:
    img = np.empty((h, w, 4), np.uint8)
    img[:] = rgba
    return img

def _gradient_x(w: int = 200, h: int = 120) -> np.ndarray:
    img = _flat(w, h, (0, 50, 50, 255))
    img[:, :, 0] = np.arange(w, dtype=np.uint8)[None, :]
    return img

def _document_scene(w: int = 320, h: int = 240) -> tuple[np.ndarray, np.ndarray]:
    """Dark desk with a light, perspective-distorted 'page' carrying a few text bars."""
    page = np.full((200, 150, 3), 235, np.uint8)
    for y in range(30, 180, 25):
        cv2.rectangle(page, (20, y), (130, y + 8), (20, 20, 20), -1)
    quad = np.array([[60, 30], [250, 45], [270, 215], [40, 200]], dtype=np.float32)
    src = np.array([[0, 0], [149, 0], [149, 199], [0, 199]], dtype=np.float32)
    M = cv2.getPerspectiveTransform(src, quad)
    scene = cv2.warpPerspective(page, M, (w, h), borderValue=(40, 40, 40))
    return cv2.cvtColor(scene, cv2.COLOR_RGB2RGBA), quad

INNER_QUAD = [(20, 20), (180, 30), (170, 130), (25, 120)]

# ---------- Acceptance scenarios ---------- #

def test_axis_aligned_black_rectangle():
    src = _flat(100, 50, (0, 0, 0, 255))
    status = RecordingStatus()
    res = rectify(src, [(0, 0), (100, 0), (100, 50), (0, 50)], status=status)
    assert isinstance(res, CorrectionResult)
    assert (res.width, res.height) == (100, 50)
    assert res.raster.shape == (50, 100, 4)
    assert np.all(res.raster[:, :, :3] == 0)
    assert np.all(res.raster[:, :, 3] == 255)
    assert status.last == ("Perspective correction applied! Corrected area: 100×50 pixels.", SUCCESS)

@pytest.mark.parametrize("strategy", list(Strategy))
@pytest.mark.parametrize("extra", [[], [(100, 25)], [(100, 25), (175, 80)]])
def test_uniform_source_gives_uniform_output(strategy, extra):
    src = _flat(200, 150)
    res = rectify(src, INNER_QUAD + extra, strategy=strategy.value)
    assert res is not None
    assert np.all(res.raster == np.array(COLOR, np.uint8))

def test_square_with_edge_midpoint_produces_one_constraint():
    src = _flat(200, 200)
    pts = [(20, 20), (120, 20), (180, 20), (180, 180), (20, 180)]
    res = rectify(src, pts)
    assert res.method == "homography-constrained"
    assert res.corner_points == [Point2D(20, 20), Point2D(180, 20), Point2D(180, 180), Point2D(20, 180)]
    assert len(res.constraints) == 1
    c = res.constraints[0]
    assert c.src == Point2D(120, 20)
    assert c.edge == 0
    assert c.param == pytest.approx(0.625)

def test_midpoint_constraint_param_is_half():
    res = rectify(_flat(120, 120), [(10, 10), (60, 10), (110, 10), (110, 110), (10, 110)])
    assert res.constraints[0].param == pytest.approx(0.5)

# ---------- Homography pipeline ---------- #

def test_shifted_window_reads_the_right_columns():
    src = _gradient_x()
    res = rectify(src, [(10, 10), (110, 10), (110, 60), (10, 60)])
    assert (res.width, res.height) == (100, 50)
    red = res.raster[1:-1, 1:-1, 0].astype(int)
    expected = np.arange(1, 99)[None, :] + 10
    assert np.max(np.abs(red - expected)) <= 1

def test_keeps_caller_order_and_records_metadata():
    pts = [(180, 30), (20, 20), (25, 120), (170, 130)]
    res = rectify(_flat(200, 150), pts, cfg={"solver": "direct"})
    assert res.ordered_points == [Point2D(*p) for p in pts]
    assert res.corner_points[0] == Point2D(20, 20)
    assert res.constraints is None
    assert res.metadata["method"] == "homography"
    assert res.metadata["solver"] == "direct"
    assert res.metadata["strategy"] == "homography-constrained"
    assert res.metadata["point_count"] == 4
    assert res.metadata["is_convex"] is True
    assert "time_ms" in res.metadata

def test_target_size_is_corner_bounding_box_with_floor():
    corners = [Point2D(0, 0), Point2D(4.4, 0), Point2D(4.4, 30.6), Point2D(0, 30.6)]
    assert compute_target_size(corners) == (10, 31)

def test_region_outside_source_is_white():
    src = _flat(50, 50, (0, 0, 0, 255))
    res = rectify(src, [(25, 0), (75, 0), (75, 50), (25, 50)], cfg={"sharpen": {"enabled": False}})
    assert np.all(res.raster[:, :20, :3] == 0)
    assert np.all(res.raster[:, 30:, :3] == 255)

def test_progress_cadence_for_homography():
    status = RecordingStatus()
    rectify(_flat(200, 150), INNER_QUAD, status=status)
    progress = [m for m, s in status.messages if s == NEUTRAL]
    assert progress and all(m.startswith("Processing: ") for m in progress)
    assert progress[-1] == "Processing: 100%"

def test_warp_homography_identity_copies_pixels():
    src = _gradient_x(30, 20)
    out = warp_homography(src, np.eye(3), 30, 20)
    np.testing.assert_array_equal(out, src)

# ---------- Mesh + MVC pipeline ---------- #

def test_mesh_sorts_points_and_tags_method():
    pts = [(170, 130), (20, 20), (25, 120), (180, 30)]
    status = RecordingStatus()
    res = rectify(_flat(200, 150), pts, strategy="mesh-mvc", status=status)
    assert res.method == "document-warp"
    assert res.metadata["strategy"] == "mesh-mvc"
    assert res.ordered_points == [Point2D(20, 20), Point2D(180, 30), Point2D(170, 130), Point2D(25, 120)]
    assert status.last[1] == SUCCESS
    assert status.last[0].startswith("Document correction applied (")

def test_mesh_size_from_quad_edge_averages():
    pts = [(20, 20), (120, 20), (120, 80), (20, 80)]
    res = rectify(_flat(200, 150), pts, strategy="mesh-mvc")
    assert (res.width, res.height) == (100, 60)

def test_mesh_and_homography_differ_on_the_same_input():
    scene, quad = _document_scene()
    pts = [tuple(map(float, p)) for p in quad] + [(155.0, 37.0)]
    a = rectify(scene, pts, strategy="homography-constrained")
    b = rectify(scene, pts, strategy="mesh-mvc")
    assert a is not None and b is not None
    assert a.raster.shape != b.raster.shape or not np.array_equal(a.raster, b.raster)

def test_document_scene_page_fills_the_output():
    scene, quad = _document_scene()
    res = rectify(scene, [tuple(map(float, p)) for p in quad], cfg={"sharpen": {"enabled": False}})
    inner = res.raster[5:-5, 5:-5, :3].astype(int)
    assert np.mean(inner > 150) > 0.6

# ---------- Boundary behaviour ---------- #

@pytest.mark.parametrize("pts", [[], [(0, 0), (1, 0), (1, 1)], None])
def test_insufficient_points_reported(pts):
    status = RecordingStatus()
    assert rectify(_flat(10, 10), pts, status=status) is None
    assert status.last == (INSUFFICIENT_POINTS_MSG, ERROR)

def test_unknown_strategy_reported():
    status = RecordingStatus()
    assert rectify(_flat(10, 10), INNER_QUAD, strategy="tps", status=status) is None
    assert status.last[1] == ERROR

def test_bad_raster_is_reported_not_raised():
    status = RecordingStatus()
    assert rectify(np.zeros((4, 4, 2), np.uint8), INNER_QUAD, status=status) is None
    assert status.last[1] == ERROR
    assert status.last[0].startswith("Error: ")

def test_rgb_source_is_accepted():
    res = rectify(np.zeros((60, 60, 3), np.uint8), [(5, 5), (50, 5), (50, 50), (5, 50)])
    assert res.raster.shape[2] == 4
    assert np.all(res.raster[:, :, 3] == 255)

def test_source_untouched_and_output_repeatable():
    scene, quad = _document_scene()
    before = scene.copy()
    pts = [tuple(map(float, p)) for p in quad] + [(155.0, 37.0), (262.0, 130.0)]
    a = rectify(scene, pts)
    b = rectify(scene, pts)
    np.testing.assert_array_equal(scene, before)
    np.testing.assert_array_equal(a.raster, b.raster)

def test_near_degenerate_points_still_complete():
    status = RecordingStatus()
    res = rectify(_flat(60, 60), [(0, 0), (20, 1e-9), (40, 0), (59, 1e-9)], status=status)
    assert res is not None
    assert status.last[1] == SUCCESS

# ---------- Selections far from the raster origin ---------- #

def _step_gradient(w: int = 3000, h: int = 600) -> np.ndarray:
    img = _flat(w, h, (0, 50, 50, 255))
    img[:, :, 0] = (np.arange(w) // 20).astype(np.uint8)[None, :]
    return img

FAR_PAGE = [(2400, 1300), (2950, 1340), (2900, 1900), (2420, 1850)]

def _far_page_scene() -> np.ndarray:
    img = _flat(3000, 2000, (40, 40, 40, 255))
    cv2.fillPoly(img, [np.array(FAR_PAGE, np.int32)], (235, 235, 235, 255))
    return img

@pytest.mark.parametrize("solver", ["nullspace", "direct"])
def test_far_axis_aligned_window_reads_the_right_columns(solver):
    res = rectify(_step_gradient(), [(2400, 100), (2900, 100), (2900, 500), (2400, 500)],
                  cfg={"solver": solver, "sharpen": {"enabled": False}})
    assert (res.width, res.height) == (500, 400)
    red = res.raster[:, :-1, 0].astype(int)
    expected = (2400 + np.arange(499))[None, :] // 20
    assert np.max(np.abs(red - expected)) <= 1

@pytest.mark.parametrize("solver", ["nullspace", "direct"])
@pytest.mark.parametrize("extra", [[], [(2675, 1320)]])
def test_far_perspective_page_fills_the_output(solver, extra):
    res = rectify(_far_page_scene(), FAR_PAGE + extra, cfg={"solver": solver})
    assert res is not None
    inner = res.raster[25:-25, 25:-25, :3]
    assert np.all(inner > 200)
