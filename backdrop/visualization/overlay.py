from __future__ import annotations

from typing import Any, Dict, List, Optional

import cv2


def draw_hud(frame: Any, fps: float, stages_ms: Dict[str, float], state: str = "", warnings: Optional[List[str]] = None):
    """Minimal HUD overlay with FPS, stage timings and session state. Draws on a copy."""
    render = frame.copy()
    y = 25
    cv2.putText(render, f"Backdrop | FPS: {fps:5.1f} | {state}", (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
    y += 28

    for name, ms in list(stages_ms.items())[:6]:
        cv2.putText(render, f"{name}: {ms:5.1f} ms", (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (220, 220, 220), 2)
        y += 22

    if warnings:
        y += 8
        for w in warnings[:3]:
            cv2.putText(render, w, (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.65, (0, 0, 255), 2)
            y += 24

    return render
