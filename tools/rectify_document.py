#!/usr/bin/env python3
from __future__ import annotations
import argparse
import logging
import os
import sys

from docrectify.core.config import load_cfg, merge_cfg
from docrectify.core.status import ERROR, RecordingStatus
from docrectify.geometry.rectify import rectify
from docrectify.io.export import default_filename, download_corrected_image, print_corrected_document
from docrectify.io.ingest import load_image_rgba, load_points, parse_points


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Rectify a document region outlined by 4+ points.")
    ap.add_argument("image", help="Path to the source image.")
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--points", help='Inline points: "x,y x,y x,y x,y ..." (raster pixels).')
    src.add_argument("--points_json", help="JSON file with [[x,y],...] or [{x,y},...].")
    ap.add_argument("--strategy", choices=["homography-constrained", "mesh-mvc"], default=None,
                    help="Resampling pipeline (default from config: homography-constrained).")
    ap.add_argument("--solver", choices=["nullspace", "direct"], default=None)
    ap.add_argument("--config", default=None, help="YAML config (see config/rectify.yaml).")
    ap.add_argument("--no_sharpen", action="store_true", help="Skip the post-filter.")
    ap.add_argument("--out_dir", default="output", help="Directory for outputs.")
    ap.add_argument("--out", default=None, help="Output PNG name. Default: corrected-document-<timestamp>.png")
    ap.add_argument("--print_html", default=None, help="Also write a printable HTML page here.")
    ap.add_argument("--debug", action="store_true", help="Verbose logging.")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    cfg = load_cfg(args.config) if args.config else merge_cfg(None)
    if args.solver:
        cfg["solver"] = args.solver
    if args.no_sharpen:
        cfg["sharpen"]["enabled"] = False
    if args.debug:
        cfg["debug"] = True

    img = load_image_rgba(args.image)
    pts = parse_points(args.points) if args.points else load_points(args.points_json)

    status = RecordingStatus()
    result = rectify(img, pts, strategy=args.strategy, cfg=cfg, status=status)
    if result is None:
        print(status.last[0] if status.last else "Correction failed.", file=sys.stderr)
        return 1

    out = download_corrected_image(result, args.out_dir, filename=args.out or default_filename(), status=status)
    if args.print_html:
        print_corrected_document(result, os.path.join(args.out_dir, args.print_html), status=status)

    for msg in status.with_severity(ERROR):
        print(msg, file=sys.stderr)
    print(f"Saved corrected document to: {out} ({result.width}x{result.height}, method={result.method})")
    return 0 if out is not None else 1


if __name__ == "__main__":
    sys.exit(main())
