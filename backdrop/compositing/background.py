from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Tuple

import cv2
import numpy as np

from backdrop.utils.errors import ImageDecodeError


def _as_bgr(image: np.ndarray) -> np.ndarray:
    image = np.asarray(image)
    if image.dtype != np.uint8:
        raise ValueError(f"background image must be uint8, got {image.dtype}")
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if image.ndim == 3 and image.shape[2] == 3:
        return image
    raise ValueError(f"unsupported background image shape {image.shape}")


def _check_target(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"target size must be positive, got {width}x{height}")


def decode_image(data: bytes) -> np.ndarray:
    """Decode raw image bytes (any format OpenCV reads) into a BGR array."""
    buf = np.frombuffer(data or b"", dtype=np.uint8)
    if buf.size == 0:
        raise ImageDecodeError("background image is empty")
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if image is None:
        raise ImageDecodeError("background image could not be decoded")
    return image


def load_image(path: str | Path) -> np.ndarray:
    image_path = Path(path)
    if not image_path.exists():
        raise FileNotFoundError(f"Background image not found: {image_path.resolve()}")
    return decode_image(image_path.read_bytes())


@dataclass(frozen=True, eq=False)
class BackgroundAsset:
    """
    Background normalized to exactly the frame size.

    `source` is the original image (BGR array) or an RGB fill color; it is kept
    so the asset can be regenerated when the target size changes. `scale` and
    `offset` are the cover-fit parameters used to place the source.
    """

    data: np.ndarray
    source: Any
    scale: float = 1.0
    offset: Tuple[float, float] = (0.0, 0.0)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def is_color(self) -> bool:
        return isinstance(self.source, tuple)

    @classmethod
    def from_image(cls, image: np.ndarray, target_width: int, target_height: int) -> "BackgroundAsset":
        _check_target(target_width, target_height)
        source = _as_bgr(image)
        img_h, img_w = source.shape[:2]
        if img_w == 0 or img_h == 0:
            raise ValueError("background image has no pixels")

        # Cover fit: the larger ratio guarantees full coverage, overflow is cropped.
        scale = max(target_width / img_w, target_height / img_h)
        offset = ((target_width - img_w * scale) / 2.0, (target_height - img_h * scale) / 2.0)

        # Crop the visible source region before resizing; only target-sized buffers are allocated.
        crop_w = min(img_w, max(1, int(round(target_width / scale))))
        crop_h = min(img_h, max(1, int(round(target_height / scale))))
        x0 = (img_w - crop_w) // 2
        y0 = (img_h - crop_h) // 2
        visible = source[y0 : y0 + crop_h, x0 : x0 + crop_w]

        interp = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
        data = cv2.resize(visible, (target_width, target_height), interpolation=interp)
        data = np.ascontiguousarray(data)
        data.setflags(write=False)
        return cls(data=data, source=source, scale=scale, offset=offset)

    @classmethod
    def from_color(cls, rgb: Tuple[int, int, int], width: int, height: int) -> "BackgroundAsset":
        _check_target(width, height)
        r, g, b = (int(c) for c in rgb)
        data = np.empty((height, width, 3), dtype=np.uint8)
        data[:] = (b, g, r)
        data.setflags(write=False)
        return cls(data=data, source=(r, g, b))

    def resized(self, width: int, height: int) -> "BackgroundAsset":
        """Regenerate from the original source for a new target size."""
        if (width, height) == self.size:
            return self
        if self.is_color:
            return BackgroundAsset.from_color(self.source, width, height)
        return BackgroundAsset.from_image(self.source, width, height)
