from __future__ import annotations

import base64
from dataclasses import dataclass

import cv2
import numpy as np

from backdrop.utils.errors import EncodingError
from backdrop.utils.types import Composite

DEFAULT_QUALITY = 1.0

_FORMATS = {
    "jpeg": (".jpg", "image/jpeg"),
    "jpg": (".jpg", "image/jpeg"),
    "png": (".png", "image/png"),
    "webp": (".webp", "image/webp"),
}


@dataclass(frozen=True)
class EncodedImage:
    data: bytes
    mime_type: str
    width: int
    height: int

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


def _encode_params(fmt: str, quality: float) -> list:
    if fmt in ("jpeg", "jpg"):
        return [cv2.IMWRITE_JPEG_QUALITY, int(round(quality * 100))]
    if fmt == "webp":
        return [cv2.IMWRITE_WEBP_QUALITY, max(1, int(round(quality * 100)))]
    # PNG is lossless; quality trades size for speed.
    return [cv2.IMWRITE_PNG_COMPRESSION, int(round((1.0 - quality) * 9))]


class SnapshotExporter:
    """Encodes a composite to a still image. Read-only over the composite buffer."""

    def export(self, composite: Composite, fmt: str = "jpeg", quality: float = DEFAULT_QUALITY) -> EncodedImage:
        fmt = (fmt or "jpeg").lower()
        if fmt not in _FORMATS:
            raise EncodingError(f"Unsupported snapshot format: {fmt!r}")
        if composite is None or composite.data is None or composite.data.size == 0:
            raise EncodingError("No composite to export")

        try:
            quality = min(1.0, max(0.0, float(quality)))
        except (TypeError, ValueError):
            quality = DEFAULT_QUALITY

        ext, mime = _FORMATS[fmt]
        try:
            ok, buf = cv2.imencode(ext, np.ascontiguousarray(composite.data), _encode_params(fmt, quality))
        except cv2.error as err:
            raise EncodingError(f"Encoding {fmt} failed: {err}") from err
        if not ok:
            raise EncodingError(f"Encoding {fmt} failed")

        width, height = composite.size
        return EncodedImage(data=buf.tobytes(), mime_type=mime, width=width, height=height)
