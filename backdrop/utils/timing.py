from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass
class StageTimer:
    """Per-stage wall time of one frame's trip through the pipeline, in ms."""

    stages_ms: Dict[str, float] = field(default_factory=dict)

    def mark(self, stage_name: str, stage_start_ts: float) -> float:
        elapsed = (time.perf_counter() - stage_start_ts) * 1000.0
        self.stages_ms[stage_name] = elapsed
        return elapsed

    @contextmanager
    def stage(self, stage_name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.mark(stage_name, start)

    @property
    def total_ms(self) -> float:
        return sum(self.stages_ms.values())


@dataclass
class FPSMeter:
    """Composites per second, smoothed with an exponential moving average."""

    smoothing: float = 0.9
    fps: float = 0.0
    _last_ts: float = field(default_factory=time.perf_counter)

    def tick(self) -> float:
        now = time.perf_counter()
        rate = 1.0 / max(now - self._last_ts, 1e-9)
        self._last_ts = now
        if self.fps <= 0:
            self.fps = rate
        else:
            self.fps = self.smoothing * self.fps + (1.0 - self.smoothing) * rate
        return self.fps

    def reset(self) -> None:
        self.fps = 0.0
        self._last_ts = time.perf_counter()
