from __future__ import annotations

import argparse
import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import cv2
import numpy as np
from rich.console import Console
from tqdm import tqdm

from backdrop.compositing.background import load_image
from backdrop.inputs.camera_input import CameraInput
from backdrop.inputs.video_input import VideoInput
from backdrop.perception.segmentation.deeplabv3_segmenter import DeepLabV3Segmenter
from backdrop.runtime.events import ERROR, FRAME_READY, STATE_CHANGE
from backdrop.runtime.scheduler import FrameScheduler
from backdrop.runtime.session_logger import SessionEventLogger
from backdrop.utils.config import get, load_yaml, parse_color, resolution_hint_from, segmentation_config_from
from backdrop.utils.errors import AlreadyActiveError, CameraAccessError, EncodingError
from backdrop.utils.logger import setup_logger
from backdrop.utils.types import SessionState
from backdrop.visualization.preview import PreviewWindow

KEY_QUIT = (ord("q"), 27)
KEY_CAPTURE = ord("c")
KEY_CLEAR_BACKGROUND = ord("b")
KEY_RELOAD_MODEL = ord("r")


def make_run_dir(base_dir: str | Path) -> Path:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(base_dir) / f"run_{ts}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def build_scheduler(cfg: Dict[str, Any], input_path: Optional[str] = None, device: Optional[int] = None) -> FrameScheduler:
    if input_path:
        source = VideoInput(input_path)
    else:
        source = CameraInput(device=device if device is not None else get(cfg, "camera.device", 0))
    engine = DeepLabV3Segmenter(
        device=get(cfg, "segmentation.device"),
        input_size=get(cfg, "segmentation.input_size"),
    )
    return FrameScheduler(
        source,
        engine,
        cfg=cfg,
        config=segmentation_config_from(cfg),
        fallback_color=parse_color(get(cfg, "background.fallback_color")),
    )


def capture(scheduler: FrameScheduler, cfg: Dict[str, Any], console: Console) -> Optional[np.ndarray]:
    """Encode the current composite and decode it back for display; nothing is written to disk."""
    try:
        encoded = scheduler.snapshot(
            fmt=get(cfg, "snapshot.format", "jpeg"),
            quality=float(get(cfg, "snapshot.quality", 1.0)),
        )
    except EncodingError as err:
        console.print(f"[red]Capture failed:[/red] {err}")
        return None
    console.print(f"Captured {encoded.width}x{encoded.height} {encoded.mime_type} ({len(encoded.data)} bytes)")
    return cv2.imdecode(np.frombuffer(encoded.data, dtype=np.uint8), cv2.IMREAD_COLOR)


async def run_session(args: argparse.Namespace, cfg: Dict[str, Any], run_dir: Path, logger, console: Console) -> int:
    scheduler = build_scheduler(cfg, input_path=args.input, device=args.device)

    event_log = SessionEventLogger(run_dir)
    scheduler.subscribe(STATE_CHANGE, event_log.on_state_change)
    scheduler.subscribe(ERROR, event_log.on_error)

    background_path = args.background or get(cfg, "background.path")
    if background_path:
        scheduler.set_background(load_image(background_path))
        logger.info("Background image: %s", background_path)

    if not await scheduler.configure(scheduler.config):
        console.print("[yellow]Segmentation model unavailable; press 'r' in the preview to retry.[/yellow]")

    try:
        handle = scheduler.start(resolution_hint_from(cfg))
    except (CameraAccessError, AlreadyActiveError) as err:
        console.print(f"[bold red]{err}[/bold red]")
        return 1
    console.print(f"Streaming {handle.width}x{handle.height} from {handle.device}")

    preview = None
    if not args.no_preview and bool(get(cfg, "runtime.preview", True)):
        preview = PreviewWindow(stats=lambda: scheduler.stats, show_hud=bool(get(cfg, "runtime.hud", True)))
        scheduler.subscribe(FRAME_READY, preview.on_frame_ready)
        scheduler.subscribe(STATE_CHANGE, preview.on_state_change)
        scheduler.subscribe(ERROR, preview.on_error)

    progress = tqdm(desc="Composited", unit="frame", total=args.max_frames)
    scheduler.subscribe(FRAME_READY, lambda _composite: progress.update(1))

    captured: Optional[np.ndarray] = None
    runner = asyncio.create_task(scheduler.run(max_frames=args.max_frames))
    try:
        while not runner.done():
            if preview is not None:
                key = preview.poll_key(1)
                if key in KEY_QUIT:
                    scheduler.stop()
                    break
                if key == KEY_CAPTURE:
                    captured = capture(scheduler, cfg, console)
                    if captured is not None:
                        preview.show_capture(captured)
                elif key == KEY_CLEAR_BACKGROUND:
                    scheduler.set_background(None)
                elif key == KEY_RELOAD_MODEL:
                    await scheduler.reconcile()
            await asyncio.sleep(0.01)
        stats = await runner
    finally:
        scheduler.stop()
        progress.close()
        if preview is not None:
            preview.close()

    logger.info("[SESSION] final | %s", stats.summary())
    return 1 if scheduler.session_state is SessionState.ERROR else 0


def main():
    parser = argparse.ArgumentParser(description="Backdrop - live background replacement")
    parser.add_argument("--config", default="configs/system.yaml", help="Path to YAML config")
    parser.add_argument("--device", type=int, default=None, help="Camera index (overrides camera.device)")
    parser.add_argument("--input", default=None, help="Video file to use instead of the camera")
    parser.add_argument("--background", default=None, help="Background image (overrides background.path)")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after reading this many frames")
    parser.add_argument("--no-preview", action="store_true", help="Run without the OpenCV window")
    args = parser.parse_args()

    cfg: Dict[str, Any] = load_yaml(args.config)

    output_base = get(cfg, "runtime.output_dir", "results")
    run_dir = make_run_dir(output_base)
    logger = setup_logger(log_dir=run_dir, level=get(cfg, "runtime.log_level", "INFO"))

    console = Console()
    console.print(f"[bold]Backdrop[/bold] run dir: {run_dir}")

    try:
        code = asyncio.run(run_session(args, cfg, run_dir, logger, console))
    except KeyboardInterrupt:
        console.print("Interrupted.")
        code = 130
    logger.info("Done.")
    raise SystemExit(code)


if __name__ == "__main__":
    main()
