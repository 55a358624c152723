from __future__ import annotations

import abc

from backdrop.utils.types import Frame, SegmentationConfig, SegmentationMask


class BaseSegmenter(abc.ABC):
    """
    Asynchronous person segmentation contract.

    initialize() may be called again at any time to swap the model; infer()
    is non-reentrant and must raise EngineBusyError when a call is outstanding.
    """

    @property
    @abc.abstractmethod
    def ready(self) -> bool:
        ...

    @abc.abstractmethod
    async def initialize(self, config: SegmentationConfig) -> None:
        """Raises ModelLoadError; the engine is left uninitialized on failure."""
        raise NotImplementedError

    @abc.abstractmethod
    async def infer(self, frame: Frame) -> SegmentationMask:
        """
        Input:
            frame: BGR image (H, W, 3)
        Output:
            SegmentationMask of shape (H, W), float32 in [0, 1]
        Raises InferenceError.
        """
        raise NotImplementedError
