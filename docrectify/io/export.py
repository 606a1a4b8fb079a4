# docrectify/io/export.py
"""
Consumers of a CorrectionResult: PNG download and a printable HTML page.
Both only need (raster, width, height). Failures are reported to the status
sink instead of propagating.
"""

from __future__ import annotations
import base64
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from docrectify.core.contracts import CorrectionResult
from docrectify.core.status import ERROR, SUCCESS, StatusSink, resolve_sink

logger = logging.getLogger(__name__)

NO_RESULT_MSG = "No corrected image available. Please apply perspective correction first."

_PRINT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
  @page {{ margin: 0; }}
  html, body {{ margin: 0; padding: 0; background: #ffffff; }}
  img {{ display: block; width: 100%; height: auto; }}
</style>
</head>
<body>
<img src="data:image/png;base64,{data}" width="{width}" height="{height}" alt="{title}">
<script>window.onload = function () {{ window.print(); }};</script>
</body>
</html>
"""


def default_filename(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    return f"corrected-document-{stamp}.png"


def flatten_on_white(raster: np.ndarray) -> np.ndarray:
    """Composite RGBA over white; returns opaque BGR for OpenCV writers."""
    rgba = raster.astype(np.float64)
    alpha = rgba[:, :, 3:4] / 255.0
    rgb = rgba[:, :, :3] * alpha + 255.0 * (1.0 - alpha)
    rgb = np.clip(np.floor(rgb + 0.5), 0, 255).astype(np.uint8)
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def encode_png(result: CorrectionResult) -> bytes:
    ok, buf = cv2.imencode(".png", flatten_on_white(result.raster))
    if not ok:
        raise ValueError("PNG encoding failed")
    return buf.tobytes()


def _has_image(result: Optional[CorrectionResult]) -> bool:
    return result is not None and result.raster is not None and result.raster.size > 0


def download_corrected_image(
    result: Optional[CorrectionResult],
    out_dir: Union[str, Path] = ".",
    *,
    filename: Optional[str] = None,
    status: Optional[StatusSink] = None,
) -> Optional[Path]:
    """Write the corrected image as PNG. Returns the path, or None on failure."""
    status = resolve_sink(status)
    if not _has_image(result):
        status(NO_RESULT_MSG, ERROR)
        return None
    try:
        os.makedirs(out_dir, exist_ok=True)
        path = Path(out_dir) / (filename or default_filename())
        path.write_bytes(encode_png(result))
    except (OSError, ValueError, cv2.error) as e:
        logger.exception("download_failed")
        status(f"Download failed: {e}", ERROR)
        return None
    status(f"Image downloaded successfully! ({result.width}×{result.height}px)", SUCCESS)
    return path


def render_print_html(result: CorrectionResult, title: str = "Corrected Document") -> str:
    data = base64.b64encode(encode_png(result)).decode("ascii")
    return _PRINT_TEMPLATE.format(title=title, data=data, width=result.width, height=result.height)


def print_corrected_document(
    result: Optional[CorrectionResult],
    out_path: Union[str, Path],
    *,
    status: Optional[StatusSink] = None,
) -> Optional[Path]:
    """Write a self-printing HTML page embedding the corrected image."""
    status = resolve_sink(status)
    if not _has_image(result):
        status(NO_RESULT_MSG, ERROR)
        return None
    try:
        path = Path(out_path)
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_print_html(result), encoding="utf-8")
    except (OSError, ValueError, cv2.error) as e:
        logger.exception("print_failed")
        status(f"Print failed: {e}", ERROR)
        return None
    status(f"Print document prepared ({result.width}×{result.height}px)", SUCCESS)
    return path
