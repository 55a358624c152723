from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import cv2
import numpy as np
import torch
import torchvision

from backdrop.perception.segmentation.base_segmenter import BaseSegmenter
from backdrop.perception.segmentation.postprocess import gate_presence, input_size_for, resample_mask
from backdrop.utils.errors import EngineBusyError, InferenceError, ModelLoadError
from backdrop.utils.logger import get_logger
from backdrop.utils.types import Frame, ModelTier, SegmentationConfig, SegmentationMask

_IMAGENET_MEAN = torch.tensor([0.485, 0.456, 0.406]).view(3, 1, 1)
_IMAGENET_STD = torch.tensor([0.229, 0.224, 0.225]).view(3, 1, 1)

ModelLoader = Callable[[ModelTier, str], Tuple[Any, int]]


def default_device() -> str:
    return "mps" if torch.backends.mps.is_available() else "cpu"


def load_torchvision_model(tier: ModelTier, device: str) -> Tuple[Any, int]:
    """Returns (model, person_class_index) for a pretrained VOC segmentation model."""
    seg = torchvision.models.segmentation
    if tier is ModelTier.FAST:
        weights = seg.DeepLabV3_MobileNet_V3_Large_Weights.DEFAULT
        model = seg.deeplabv3_mobilenet_v3_large(weights=weights)
    else:
        weights = seg.DeepLabV3_ResNet50_Weights.DEFAULT
        model = seg.deeplabv3_resnet50(weights=weights)
    person_index = list(weights.meta["categories"]).index("person")
    model.to(device)
    model.eval()
    return model, person_index


@dataclass(frozen=True)
class _LoadedModel:
    model: Any
    person_index: int
    config: SegmentationConfig


class DeepLabV3Segmenter(BaseSegmenter):
    """
    DeepLabV3 person segmentation (torchvision, VOC classes).
    FAST uses the MobileNetV3 backbone, HIGH_QUALITY the ResNet50 one.
    """

    def __init__(self, device: Optional[str] = None, input_size: Optional[int] = None, model_loader: Optional[ModelLoader] = None):
        self.device = device or default_device()
        self.input_size = input_size
        self.model_loader = model_loader or load_torchvision_model
        self.logger = get_logger(__name__)
        self.last_latency_ms = 0.0
        self._active: Optional[_LoadedModel] = None
        self._busy = False
        self._person_present = False

    @property
    def ready(self) -> bool:
        return self._active is not None

    @property
    def busy(self) -> bool:
        return self._busy

    async def initialize(self, config: SegmentationConfig) -> None:
        self.logger.info(
            "Loading segmentation model tier=%s device=%s det=%.2f track=%.2f",
            config.model_tier.value,
            self.device,
            config.min_detection_confidence,
            config.min_tracking_confidence,
        )
        t0 = time.perf_counter()
        try:
            model, person_index = await asyncio.to_thread(self.model_loader, config.model_tier, self.device)
        except Exception as err:
            self._active = None
            raise ModelLoadError(f"Failed to load the segmentation model ({config.model_tier.value}): {err}") from err
        # In-flight inference keeps the model reference it started with.
        self._active = _LoadedModel(model=model, person_index=int(person_index), config=config)
        self._person_present = False
        self.logger.info("Segmentation model ready in %.0f ms", (time.perf_counter() - t0) * 1000.0)

    async def infer(self, frame: Frame) -> SegmentationMask:
        if self._busy:
            raise EngineBusyError("infer() called while a previous inference is outstanding")
        active = self._active
        if active is None:
            raise InferenceError("Segmentation model is not loaded")

        self._busy = True
        try:
            probs = await asyncio.to_thread(self._person_probs, active, frame.data)
        except Exception as err:
            raise InferenceError(f"Inference failed on frame {frame.index}: {err}") from err
        finally:
            self._busy = False

        cfg = active.config
        threshold = cfg.min_tracking_confidence if self._person_present else cfg.min_detection_confidence
        self._person_present = gate_presence(probs, threshold)
        if not self._person_present:
            probs = np.zeros_like(probs)
        return resample_mask(probs, frame.width, frame.height)

    @torch.no_grad()
    def _person_probs(self, active: _LoadedModel, image: np.ndarray) -> np.ndarray:
        start = time.perf_counter()
        h, w = image.shape[:2]
        in_w, in_h = input_size_for(w, h, self.input_size)
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        if (in_w, in_h) != (w, h):
            rgb = cv2.resize(rgb, (in_w, in_h), interpolation=cv2.INTER_AREA)

        img = torch.from_numpy(rgb).permute(2, 0, 1).float() / 255.0
        img = ((img - _IMAGENET_MEAN) / _IMAGENET_STD).unsqueeze(0).to(self.device)

        output = active.model(img)["out"]
        probs = torch.softmax(output, dim=1)[0, active.person_index]

        self.last_latency_ms = (time.perf_counter() - start) * 1000.0
        return probs.float().cpu().numpy()
