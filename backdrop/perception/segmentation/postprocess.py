from __future__ import annotations

import cv2
import numpy as np

from backdrop.utils.types import SegmentationMask


def resample_mask(mask: np.ndarray, width: int, height: int) -> SegmentationMask:
    """
    Bring a model-resolution probability map to frame resolution.

    Args:
        mask: (h, w) float probabilities or uint8 [0, 255]
        width, height: frame size

    Returns:
        SegmentationMask of exactly (height, width)
    """
    values = SegmentationMask.from_array(mask).data
    if values.shape != (height, width):
        values = cv2.resize(values, (width, height), interpolation=cv2.INTER_LINEAR)
        values = np.clip(values, 0.0, 1.0)
    return SegmentationMask(data=np.ascontiguousarray(values, dtype=np.float32))


def gate_presence(probs: np.ndarray, threshold: float) -> bool:
    """A person counts as present when the peak foreground probability reaches the threshold."""
    if probs.size == 0:
        return False
    return float(probs.max()) >= threshold


def input_size_for(width: int, height: int, short_side: int | None) -> tuple:
    """Downscale so the short side equals short_side; never upscale."""
    if not short_side or min(width, height) <= short_side:
        return width, height
    scale = short_side / float(min(width, height))
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))
