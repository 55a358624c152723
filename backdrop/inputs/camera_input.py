from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional, Set, Tuple

import cv2

from backdrop.inputs.base_input import BaseInput
from backdrop.utils.errors import AlreadyActiveError, CameraAccessError
from backdrop.utils.logger import get_logger
from backdrop.utils.types import Frame, StreamHandle


def _default_capture_factory(device: Any):
    return cv2.VideoCapture(device)


class CameraInput(BaseInput):
    """
    Live camera source backed by cv2.VideoCapture.
    A device index can be held by at most one CameraInput at a time.
    """

    _held_devices: Set[Any] = set()
    _lock = threading.Lock()

    def __init__(self, device: Any = 0, capture_factory: Optional[Callable[[Any], Any]] = None):
        self.device = device
        self.capture_factory = capture_factory or _default_capture_factory
        self.logger = get_logger(__name__)
        self.cap = None
        self.handle: Optional[StreamHandle] = None
        self._index = 0

    @property
    def active(self) -> bool:
        return self.cap is not None

    def start(self, resolution_hint: Optional[Tuple[int, int]] = None) -> StreamHandle:
        with self._lock:
            if self.cap is not None or self.device in self._held_devices:
                raise AlreadyActiveError(f"Camera {self.device!r} is already active")
            self._held_devices.add(self.device)

        try:
            cap = self.capture_factory(self.device)
        except Exception as err:
            self._release_claim()
            raise CameraAccessError(f"Could not open camera {self.device!r}: {err}") from err

        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            self._release_claim()
            raise CameraAccessError(
                f"Failed to access camera {self.device!r}. Make sure it is connected and permission is granted."
            )

        if resolution_hint is not None:
            # Best effort: drivers may negotiate a different size.
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(resolution_hint[0]))
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(resolution_hint[1]))

        self.cap = cap
        self._index = 0
        self.handle = StreamHandle(
            device=self.device,
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0),
            fps=float(cap.get(cv2.CAP_PROP_FPS) or 0.0),
        )
        self.logger.info(
            "Camera opened: device=%s size=%dx%d fps=%.1f (requested %s)",
            self.device,
            self.handle.width,
            self.handle.height,
            self.handle.fps,
            resolution_hint,
        )
        return self.handle

    def current_frame(self) -> Optional[Frame]:
        if self.cap is None:
            return None
        ok, image = self.cap.read()
        if not ok or image is None:
            raise CameraAccessError(f"Camera {self.device!r} stopped delivering frames")
        self._index += 1
        image.setflags(write=False)
        return Frame(data=image, timestamp=time.monotonic(), index=self._index)

    def stop(self) -> None:
        cap, self.cap = self.cap, None
        try:
            if cap is not None:
                cap.release()
                self.logger.info("Camera released: device=%s", self.device)
        finally:
            if cap is not None:
                self._release_claim()

    def _release_claim(self) -> None:
        with self._lock:
            self._held_devices.discard(self.device)
