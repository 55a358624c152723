from __future__ import annotations

import abc
from typing import Optional, Tuple

from backdrop.utils.types import Frame, StreamHandle


class BaseInput(abc.ABC):
    """Frame source contract shared by the camera and file inputs."""

    @abc.abstractmethod
    def start(self, resolution_hint: Optional[Tuple[int, int]] = None) -> StreamHandle:
        ...

    @abc.abstractmethod
    def current_frame(self) -> Optional[Frame]:
        """Latest available frame, or None once the source is exhausted."""
        ...

    @abc.abstractmethod
    def stop(self) -> None:
        ...

    @property
    @abc.abstractmethod
    def active(self) -> bool:
        ...
