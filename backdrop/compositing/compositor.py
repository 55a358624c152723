from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from backdrop.compositing.background import BackgroundAsset
from backdrop.utils.types import Composite, EffectsConfig, Frame, SegmentationMask


def vignette_factor(width: int, height: int, strength: float) -> np.ndarray:
    """
    Radial darkening multiplier, 1.0 at the frame midpoint falling linearly to
    (1 - strength) at half the frame width and beyond.

    Returns:
        (H, W) float32
    """
    cx = (width - 1) / 2.0
    cy = (height - 1) / 2.0
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32)
    r = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2)
    t = np.minimum(1.0, r / max(width / 2.0, 1e-6))
    return (1.0 - strength * t).astype(np.float32)


def _blur(image: np.ndarray, radius: float) -> np.ndarray:
    return cv2.GaussianBlur(image, (0, 0), sigmaX=float(radius), sigmaY=float(radius), borderType=cv2.BORDER_REPLICATE)


def composite(
    frame: Frame,
    mask: SegmentationMask,
    background: BackgroundAsset,
    effects: Optional[EffectsConfig] = None,
) -> Composite:
    """
    out = mask * frame + (1 - mask) * background, per pixel.

    Optional effects: mask edge softening and background blur before blending,
    vignette multiplied over the result. No resizing happens here; all inputs
    must already share the frame size.
    """
    if not (frame.size == mask.size == background.size):
        raise ValueError(
            f"size mismatch: frame={frame.size} mask={mask.size} background={background.size}"
        )

    effects = effects or EffectsConfig()
    alpha = mask.data
    bg = background.data

    if effects.edge_soften_radius > 0:
        alpha = np.clip(_blur(alpha, effects.edge_soften_radius), 0.0, 1.0)
    if effects.background_blur_radius > 0:
        bg = _blur(bg, effects.background_blur_radius)

    a = alpha[:, :, None]
    out = a * frame.data.astype(np.float32) + (1.0 - a) * bg.astype(np.float32)

    if effects.vignette_strength > 0:
        out *= vignette_factor(frame.width, frame.height, effects.vignette_strength)[:, :, None]

    data = np.clip(np.rint(out), 0, 255).astype(np.uint8)
    return Composite(data=data, frame_index=frame.index, timestamp=frame.timestamp)
