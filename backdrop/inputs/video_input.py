from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2

from backdrop.inputs.base_input import BaseInput
from backdrop.utils.errors import AlreadyActiveError, CameraAccessError
from backdrop.utils.logger import get_logger
from backdrop.utils.types import Frame, StreamHandle


@dataclass
class VideoMeta:
    fps: float
    width: int
    height: int
    frame_count: int


class VideoInput(BaseInput):
    """File-backed frame source for offline runs; the resolution hint is ignored."""

    def __init__(self, path: str | Path, allow_missing: bool = False, frame_rate: Optional[int] = None):
        self.path = Path(path)
        self.logger = get_logger(__name__)
        self.frame_rate = frame_rate
        self.allow_missing = allow_missing
        self.cap = None
        self.meta: Optional[VideoMeta] = None
        self._index = 0

    @property
    def active(self) -> bool:
        return self.cap is not None

    def start(self, resolution_hint: Optional[Tuple[int, int]] = None) -> StreamHandle:
        if self.cap is not None:
            raise AlreadyActiveError(f"Video {self.path} is already open")

        if not self.path.exists():
            if self.allow_missing:
                self.logger.warning("Video %s not found; proceeding inert for testing.", self.path)
                return StreamHandle(device=str(self.path), width=0, height=0)
            raise CameraAccessError(f"Video not found: {self.path}")

        cap = cv2.VideoCapture(str(self.path))
        if not cap.isOpened():
            cap.release()
            if self.allow_missing:
                self.logger.warning("Could not open video %s; proceeding inert for testing.", self.path)
                return StreamHandle(device=str(self.path), width=0, height=0)
            raise CameraAccessError(f"Could not open video: {self.path}")

        self.cap = cap
        self._index = 0
        self.meta = VideoMeta(
            fps=float(cap.get(cv2.CAP_PROP_FPS) or (self.frame_rate or 30.0)),
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0),
        )
        self.logger.info(
            "Video opened: %s fps=%.2f size=%dx%d frames=%d",
            self.path,
            self.meta.fps,
            self.meta.width,
            self.meta.height,
            self.meta.frame_count,
        )
        return StreamHandle(device=str(self.path), width=self.meta.width, height=self.meta.height, fps=self.meta.fps)

    def current_frame(self) -> Optional[Frame]:
        if self.cap is None:
            return None
        ok, image = self.cap.read()
        if not ok:
            return None
        self._index += 1
        fps = self.meta.fps if self.meta else (self.frame_rate or 30)
        image.setflags(write=False)
        return Frame(data=image, timestamp=self._index / fps, index=self._index)

    def stop(self) -> None:
        cap, self.cap = self.cap, None
        if cap is not None:
            cap.release()
            self.logger.info("Closed video %s", self.path)
