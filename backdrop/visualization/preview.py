from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Optional

import cv2
import numpy as np

from backdrop.utils.types import Composite, RuntimeStats
from backdrop.visualization.overlay import draw_hud

WINDOW_RESULT = "Backdrop"
WINDOW_CAPTURE = "Captured Image"


class PreviewWindow:
    """
    OpenCV render target. Subscribed to frame_ready; the HUD is drawn on the
    displayed copy only, so snapshots never contain it.
    """

    def __init__(self, stats: Optional[Callable[[], RuntimeStats]] = None, show_hud: bool = True):
        self.stats = stats
        self.show_hud = show_hud
        self.state = ""
        self.warnings: Deque[str] = deque(maxlen=3)

    def on_frame_ready(self, composite: Composite) -> None:
        image = composite.data
        if self.show_hud and self.stats is not None:
            stats = self.stats()
            image = draw_hud(image, stats.fps, stats.stages_ms, self.state, list(self.warnings))
        cv2.imshow(WINDOW_RESULT, image)

    def on_state_change(self, state) -> None:
        self.state = getattr(state, "value", str(state))

    def on_error(self, kind: str, message: str) -> None:
        self.warnings.append(f"{kind}: {message}"[:80])

    def show_capture(self, image: np.ndarray) -> None:
        cv2.imshow(WINDOW_CAPTURE, image)

    def poll_key(self, delay_ms: int = 1) -> int:
        return cv2.waitKey(delay_ms) & 0xFF

    def close(self) -> None:
        cv2.destroyAllWindows()
