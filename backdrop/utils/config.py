from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from backdrop.utils.types import SegmentationConfig

DEFAULT_FALLBACK_COLOR: Tuple[int, int, int] = (0, 255, 0)  # RGB, chroma-key green


def load_yaml(path: str | Path) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path.resolve()}")
    with config_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get(cfg: Dict[str, Any], key: str, default: Any = None) -> Any:
    """
    Dot-access helper:
      get(cfg, "runtime.output_dir", "results")
    """
    cur: Any = cfg
    for part in key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def segmentation_config_from(cfg: Dict[str, Any]) -> SegmentationConfig:
    raw = dict(get(cfg, "segmentation", {}) or {})
    raw.setdefault("effects", get(cfg, "effects", {}) or {})
    return SegmentationConfig.from_dict(raw)


def resolution_hint_from(cfg: Dict[str, Any]) -> Optional[Tuple[int, int]]:
    width = get(cfg, "camera.width")
    height = get(cfg, "camera.height")
    if not width or not height:
        return None
    return int(width), int(height)


def parse_color(value: Any, default: Tuple[int, int, int] = DEFAULT_FALLBACK_COLOR) -> Tuple[int, int, int]:
    """Accepts "#RRGGBB" or an [r, g, b] list."""
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) != 6:
            raise ValueError(f"Invalid color: {value!r}")
        return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
    r, g, b = (int(c) for c in value)
    return r, g, b
