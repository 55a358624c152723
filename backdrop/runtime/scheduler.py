from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from backdrop.compositing.background import BackgroundAsset, decode_image
from backdrop.compositing.compositor import composite
from backdrop.export.snapshot import DEFAULT_QUALITY, EncodedImage, SnapshotExporter
from backdrop.inputs.base_input import BaseInput
from backdrop.perception.segmentation.base_segmenter import BaseSegmenter
from backdrop.runtime.events import ERROR, FRAME_READY, STATE_CHANGE, EventEmitter
from backdrop.runtime.frame_sync import LatestFrameSlot
from backdrop.runtime.health_monitor import HealthMonitor
from backdrop.utils.config import DEFAULT_FALLBACK_COLOR, get
from backdrop.utils.errors import (
    AlreadyActiveError,
    CameraAccessError,
    EncodingError,
    InferenceError,
    InvalidTransitionError,
    ModelLoadError,
)
from backdrop.utils.logger import get_logger
from backdrop.utils.timing import FPSMeter, StageTimer
from backdrop.utils.types import (
    Composite,
    Frame,
    RuntimeStats,
    SchedulerState,
    SegmentationConfig,
    SegmentationMask,
    SessionState,
    StreamHandle,
)

_SESSION_TRANSITIONS = {
    SessionState.IDLE: {SessionState.STARTING},
    SessionState.STARTING: {SessionState.ACTIVE, SessionState.STOPPING},
    SessionState.ACTIVE: {SessionState.STOPPING},
    SessionState.STOPPING: {SessionState.IDLE},
    SessionState.ERROR: {SessionState.IDLE},
}


class FrameScheduler:
    """
    Ties the frame source to the segmentation engine and the compositor.

    At most one inference is outstanding. Frames arriving meanwhile go into a
    single pending slot, newest wins. A result that arrives after stop() is
    discarded, never composited.
    """

    def __init__(
        self,
        source: BaseInput,
        engine: BaseSegmenter,
        cfg: Optional[Dict[str, Any]] = None,
        config: Optional[SegmentationConfig] = None,
        fallback_color: Tuple[int, int, int] = DEFAULT_FALLBACK_COLOR,
        exporter: Optional[SnapshotExporter] = None,
        logger=None,
    ):
        self.cfg = cfg or {}
        self.source = source
        self.engine = engine
        self.logger = logger or get_logger(__name__)
        self.events = EventEmitter()
        self.exporter = exporter or SnapshotExporter()
        self.health = HealthMonitor(get(self.cfg, "runtime", {}) or {})
        self.fps_meter = FPSMeter(smoothing=float(get(self.cfg, "runtime.fps_smoothing", 0.9)))
        self.poll_interval_s = float(get(self.cfg, "runtime.poll_interval_ms", 1)) / 1000.0
        self.fallback_color = tuple(int(c) for c in fallback_color)

        self.stats = RuntimeStats()
        self.state = SchedulerState.IDLE
        self.session_state = SessionState.IDLE
        self.handle: Optional[StreamHandle] = None
        self.last_composite: Optional[Composite] = None

        self._desired_config = config or SegmentationConfig()
        self._applied_options: Optional[tuple] = None
        self._init_lock = asyncio.Lock()
        self._background_source: Optional[np.ndarray] = None
        self._background: Optional[BackgroundAsset] = None
        self._frame_size: Optional[Tuple[int, int]] = None
        self._slot = LatestFrameSlot()
        self._inflight: Optional[asyncio.Task] = None
        self._generation = 0

    def subscribe(self, event: str, listener: Callable[..., Any]) -> Callable[[], None]:
        return self.events.subscribe(event, listener)

    @property
    def config(self) -> SegmentationConfig:
        return self._desired_config

    @property
    def background(self) -> Optional[BackgroundAsset]:
        return self._background

    @property
    def pending_frames(self) -> int:
        return len(self._slot)

    @property
    def inference_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self, resolution_hint: Optional[Tuple[int, int]] = None) -> StreamHandle:
        if self.session_state is SessionState.ERROR:
            raise InvalidTransitionError("Session is in ERROR; call reset() before starting again")
        if self.session_state is not SessionState.IDLE:
            raise AlreadyActiveError(f"Session is already {self.session_state.value}")

        self._set_session_state(SessionState.STARTING)
        try:
            handle = self.source.start(resolution_hint)
        except (CameraAccessError, AlreadyActiveError) as err:
            self.logger.error("Camera start failed: %s", err)
            self._fail(err.kind, str(err))
            raise
        except Exception as err:
            self.logger.exception("Frame source failed to start")
            self._fail("InternalError", str(err))
            raise

        self.handle = handle
        self.last_composite = None
        self.stats = RuntimeStats()
        self._slot.replaced = 0
        self.fps_meter.reset()
        self.health.reset()
        if handle.width and handle.height:
            self._frame_size = (handle.width, handle.height)
            self._background_for(handle.width, handle.height)
        self._set_session_state(SessionState.ACTIVE)
        self._set_state(SchedulerState.WAITING_FOR_FRAME)
        return handle

    def stop(self) -> None:
        """Safe from any state; the source is released on every path."""
        self._generation += 1
        self._slot.clear()
        was_running = self.session_state in (SessionState.STARTING, SessionState.ACTIVE)
        if was_running:
            self._set_session_state(SessionState.STOPPING)
        try:
            self.source.stop()
        finally:
            self._set_state(SchedulerState.IDLE)
            if self.session_state is SessionState.STOPPING:
                self._set_session_state(SessionState.IDLE)
        if was_running:
            self.logger.info("[SESSION] stopped | %s", self.stats.summary())

    def reset(self) -> None:
        if self.session_state is SessionState.IDLE:
            return
        if self.session_state is not SessionState.ERROR:
            raise InvalidTransitionError(f"reset() is only valid from ERROR, not {self.session_state.value}")
        self.stop()
        self._set_session_state(SessionState.IDLE)

    async def run(self, max_frames: Optional[int] = None) -> RuntimeStats:
        """Pull frames until stopped, the source is exhausted or max_frames were read."""
        frames = 0
        exhausted = False
        while self.session_state is SessionState.ACTIVE:
            if max_frames is not None and frames >= max_frames:
                break
            if not self.tick():
                exhausted = self.session_state is SessionState.ACTIVE
                break
            frames += 1
            await asyncio.sleep(self.poll_interval_s)
        await self.wait_idle()
        if exhausted and self.session_state is SessionState.ACTIVE:
            self.stop()
        return self.stats

    async def wait_idle(self) -> None:
        while self.inference_in_flight:
            await self._inflight

    def tick(self) -> bool:
        """Read one frame and hand it to the pipeline. False when nothing more can be read."""
        if self.session_state is not SessionState.ACTIVE:
            return False
        if self.state is SchedulerState.IDLE:
            self._set_state(SchedulerState.WAITING_FOR_FRAME)
        try:
            frame = self.source.current_frame()
        except CameraAccessError as err:
            self.logger.error("Frame capture failed: %s", err)
            self._fail(err.kind, str(err))
            return False
        if frame is None:
            self.logger.info("Frame source exhausted")
            return False
        self.on_frame(frame)
        return True

    def on_frame(self, frame: Frame) -> None:
        if self.session_state is not SessionState.ACTIVE:
            return
        if self._frame_size != frame.size:
            if self._frame_size is not None:
                self.logger.info("Frame size changed %s -> %s", self._frame_size, frame.size)
            self._frame_size = frame.size
        if self.inference_in_flight:
            self._slot.put(frame)
            self.stats.replaced_pending = self._slot.replaced
            return
        if not self.engine.ready:
            self.stats.skipped_not_ready += 1
            return
        self._submit(frame)

    def _submit(self, frame: Frame) -> None:
        self.stats.submitted += 1
        self._set_state(SchedulerState.INFERRING)
        loop = asyncio.get_running_loop()
        self._inflight = loop.create_task(self._process(frame, self._generation))

    async def _process(self, frame: Frame, generation: int) -> None:
        timer = StageTimer()
        t0 = time.perf_counter()
        mask: Optional[SegmentationMask] = None
        try:
            mask = await self.engine.infer(frame)
        except InferenceError as err:
            if generation == self._generation:
                self.stats.dropped_inference += 1
                self.logger.warning("Dropped frame %d: %s", frame.index, err)
                self.events.emit(ERROR, err.kind, str(err))
        except Exception as err:
            if generation == self._generation:
                self.logger.exception("Inference task failed on frame %d", frame.index)
                self._fail("InternalError", str(err))
                return

        if generation != self._generation:
            self.logger.debug("Discarding late inference result for frame %d", frame.index)
        elif mask is not None:
            infer_ms = timer.mark("inference", t0)
            self.health.check_latency(infer_ms, self._desired_config.model_tier)
            try:
                self._render(frame, mask, timer)
            except Exception as err:
                self.logger.exception("Compositing failed on frame %d", frame.index)
                self._fail("InternalError", str(err))
                return
        self._advance()

    def _render(self, frame: Frame, mask: SegmentationMask, timer: StageTimer) -> None:
        self._set_state(SchedulerState.COMPOSITING)
        with timer.stage("composite"):
            background = self._background_for(frame.width, frame.height)
            result = composite(frame, mask, background, self._desired_config.effects)

        self.stats.stages_ms = dict(timer.stages_ms)
        self.stats.composited += 1
        self.stats.fps = self.fps_meter.tick()
        self.last_composite = result
        self.events.emit(FRAME_READY, result)
        if self.stats.composited % 30 == 0:
            self.logger.info("[SESSION] %s", self.stats.summary())

    def _advance(self) -> None:
        if self.session_state is not SessionState.ACTIVE:
            return
        pending = self._slot.take()
        if pending is not None and self.engine.ready:
            self._submit(pending)
            return
        if pending is not None:
            self.stats.skipped_not_ready += 1
        self._set_state(SchedulerState.WAITING_FOR_FRAME)

    async def configure(self, config: SegmentationConfig) -> bool:
        self._desired_config = config
        return await self.reconcile()

    async def reconcile(self) -> bool:
        """
        Bring the engine in line with the desired config. Only model options
        trigger re-initialization; effects apply from the next composite.
        Returns False when the model failed to load.
        """
        async with self._init_lock:
            config = self._desired_config
            if self.engine.ready and config.model_options() == self._applied_options:
                return True
            try:
                await self.engine.initialize(config)
            except ModelLoadError as err:
                self._applied_options = None
                self.logger.error("%s", err)
                self.events.emit(ERROR, err.kind, str(err))
                return False
            self._applied_options = config.model_options()
            return True

    def set_background(self, image: Optional[np.ndarray]) -> None:
        """Replace the background source; None restores the fallback color."""
        size = self._frame_size
        if image is None:
            asset = BackgroundAsset.from_color(self.fallback_color, *size) if size else None
        else:
            asset = BackgroundAsset.from_image(image, *size) if size else None
        self._background_source = None if image is None else np.array(image, copy=True)
        self._background = asset
        self.logger.info("Background set: %s", "fallback color" if image is None else f"image {np.asarray(image).shape}")

    def set_background_bytes(self, data: bytes) -> None:
        self.set_background(decode_image(data))

    def _background_for(self, width: int, height: int) -> BackgroundAsset:
        bg = self._background
        if bg is not None and bg.size == (width, height):
            return bg
        if bg is not None:
            bg = bg.resized(width, height)
            self.logger.info("Background regenerated for %dx%d", width, height)
        elif self._background_source is not None:
            bg = BackgroundAsset.from_image(self._background_source, width, height)
        else:
            bg = BackgroundAsset.from_color(self.fallback_color, width, height)
        self._background = bg
        return bg

    def snapshot(self, fmt: str = "jpeg", quality: float = DEFAULT_QUALITY) -> EncodedImage:
        composite_ = self.last_composite
        if composite_ is None:
            raise EncodingError("No composite has been rendered yet")
        return self.exporter.export(composite_, fmt=fmt, quality=quality)

    def _set_state(self, state: SchedulerState) -> None:
        if state is not self.state:
            self.logger.debug("[SCHED] %s -> %s", self.state.value, state.value)
            self.state = state

    def _set_session_state(self, state: SessionState) -> None:
        old = self.session_state
        if state is old:
            return
        if state is not SessionState.ERROR and state not in _SESSION_TRANSITIONS[old]:
            raise InvalidTransitionError(f"Invalid session transition {old.value} -> {state.value}")
        self.session_state = state
        self.logger.info("[SESSION] state %s -> %s", old.value, state.value)
        self.events.emit(STATE_CHANGE, state)

    def _fail(self, kind: str, message: str) -> None:
        self._generation += 1
        self._slot.clear()
        try:
            self.source.stop()
        except Exception:
            self.logger.exception("Releasing the frame source failed")
        self._set_state(SchedulerState.IDLE)
        self._set_session_state(SessionState.ERROR)
        self.events.emit(ERROR, kind, message)
