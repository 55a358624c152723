from typing import Optional

from backdrop.utils.types import Frame


class LatestFrameSlot:
    """Holds at most one pending frame; a newer frame replaces the older one."""

    def __init__(self):
        self._frame: Optional[Frame] = None
        self.replaced = 0

    def put(self, frame: Frame) -> None:
        if self._frame is not None:
            self.replaced += 1
        self._frame = frame

    def take(self) -> Optional[Frame]:
        frame, self._frame = self._frame, None
        return frame

    def clear(self) -> None:
        self._frame = None

    def __len__(self) -> int:
        return 0 if self._frame is None else 1
