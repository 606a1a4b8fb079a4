# docrectify/core/config.py
from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional, Union
import yaml

# Defaults match the behaviour of the browser tool this engine grew out of
_DEFAULT_CFG: Dict = {
    "strategy": "homography-constrained",   # or "mesh-mvc"
    "solver": "nullspace",                  # or "direct" (h9 = 1)
    "min_output_size": 10,                  # floor for estimated output sides (px)
    "sample_epsilon": 1e-6,                 # float noise allowed left/above the raster

    "constraints": {
        "influence_frac": 0.25,   # radius = frac * min(width, height)
        "falloff": 1000.0,        # w = 1 / (1 + d^2 / falloff)
        "blend_gain": 0.5,        # blend = min(1, sum(w) * gain)
        "error_space": "destination",   # H(src) - dst; "source" for H^-1(dst) - src
    },

    "sharpen": {
        "enabled": True,
        "laplacian_strength": 0.20,   # mesh pipeline
        "unsharp_strength": 0.25,     # homography pipeline
    },

    "progress": {
        "mesh_every": 5000,
        "homography_every": 10000,
    },

    "debug": False,
}


def default_cfg() -> Dict:
    return merge_cfg(None)


def merge_cfg(cfg: Optional[Dict]) -> Dict:
    merged = {k: (dict(v) if isinstance(v, dict) else v) for k, v in _DEFAULT_CFG.items()}
    if not cfg:
        return merged
    for k, v in cfg.items():
        if isinstance(v, dict) and k in merged and isinstance(merged[k], dict):
            merged[k] = {**merged[k], **v}
        else:
            merged[k] = v
    return merged


def load_cfg(path: Union[str, Path]) -> Dict:
    """Read a YAML config file and merge it over the defaults."""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config at {path} must be a mapping, got {type(data).__name__}")
    return merge_cfg(data)
