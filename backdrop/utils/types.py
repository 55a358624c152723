from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np


def _clamp(value: Any, lo: float, hi: float) -> float:
    return float(min(hi, max(lo, float(value))))


@dataclass(frozen=True, eq=False)
class Frame:
    data: np.ndarray  # (H, W, 3) uint8, BGR as delivered by OpenCV
    timestamp: float
    index: int = 0
    pixel_format: str = "bgr24"

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True, eq=False)
class SegmentationMask:
    """Foreground probability per pixel, float32 in [0, 1]."""

    data: np.ndarray

    @classmethod
    def from_array(cls, values: np.ndarray) -> "SegmentationMask":
        values = np.asarray(values)
        if values.ndim == 3 and values.shape[2] == 1:
            values = values[:, :, 0]
        if values.ndim != 2:
            raise ValueError(f"mask must be single-channel, got shape {values.shape}")
        if values.dtype == np.uint8:
            data = values.astype(np.float32) / 255.0
        else:
            data = np.clip(values.astype(np.float32), 0.0, 1.0)
        return cls(data=data)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True, eq=False)
class Composite:
    data: np.ndarray
    frame_index: int
    timestamp: float

    @property
    def size(self) -> Tuple[int, int]:
        return int(self.data.shape[1]), int(self.data.shape[0])


@dataclass(frozen=True)
class StreamHandle:
    device: Any
    width: int
    height: int
    fps: float = 0.0


class ModelTier(str, Enum):
    FAST = "fast"
    HIGH_QUALITY = "high_quality"


class SessionState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    ACTIVE = "ACTIVE"
    STOPPING = "STOPPING"
    ERROR = "ERROR"


class SchedulerState(str, Enum):
    IDLE = "IDLE"
    WAITING_FOR_FRAME = "WAITING_FOR_FRAME"
    INFERRING = "INFERRING"
    COMPOSITING = "COMPOSITING"


@dataclass(frozen=True)
class EffectsConfig:
    """Cosmetic post-processing; zero disables a stage."""

    edge_soften_radius: float = 0.0
    background_blur_radius: float = 0.0
    vignette_strength: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "edge_soften_radius", max(0.0, float(self.edge_soften_radius)))
        object.__setattr__(self, "background_blur_radius", max(0.0, float(self.background_blur_radius)))
        object.__setattr__(self, "vignette_strength", _clamp(self.vignette_strength, 0.0, 1.0))

    @property
    def enabled(self) -> bool:
        return bool(self.edge_soften_radius or self.background_blur_radius or self.vignette_strength)


@dataclass(frozen=True)
class SegmentationConfig:
    model_tier: ModelTier = ModelTier.HIGH_QUALITY
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    effects: EffectsConfig = field(default_factory=EffectsConfig)

    def __post_init__(self):
        object.__setattr__(self, "model_tier", ModelTier(self.model_tier))
        object.__setattr__(self, "min_detection_confidence", _clamp(self.min_detection_confidence, 0.0, 1.0))
        object.__setattr__(self, "min_tracking_confidence", _clamp(self.min_tracking_confidence, 0.0, 1.0))

    def model_options(self) -> Tuple[ModelTier, float, float]:
        """Fields whose change requires the engine to re-initialize."""
        return self.model_tier, self.min_detection_confidence, self.min_tracking_confidence

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "SegmentationConfig":
        raw = raw or {}
        effects = raw.get("effects") or {}
        return cls(
            model_tier=ModelTier(str(raw.get("model_tier", ModelTier.HIGH_QUALITY.value)).lower()),
            min_detection_confidence=raw.get("min_detection_confidence", 0.5),
            min_tracking_confidence=raw.get("min_tracking_confidence", 0.5),
            effects=EffectsConfig(
                edge_soften_radius=effects.get("edge_soften_radius", 0.0),
                background_blur_radius=effects.get("background_blur_radius", 0.0),
                vignette_strength=effects.get("vignette_strength", 0.0),
            ),
        )


@dataclass
class RuntimeStats:
    fps: float = 0.0
    stages_ms: Dict[str, float] = field(default_factory=dict)
    submitted: int = 0
    composited: int = 0
    dropped_inference: int = 0
    replaced_pending: int = 0
    skipped_not_ready: int = 0

    def summary(self) -> str:
        return (
            f"fps={self.fps:.1f} "
            f"submitted={self.submitted} "
            f"composited={self.composited} "
            f"dropped={self.dropped_inference} "
            f"replaced={self.replaced_pending} "
            f"skipped={self.skipped_not_ready}"
        )
