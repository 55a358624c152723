import json
import time
from pathlib import Path


class SessionEventLogger:
    """Appends session state changes and errors to a JSONL file in the run directory."""

    def __init__(self, run_dir: Path):
        self.log_path = Path(run_dir) / "session_events.jsonl"
        self.last_state = None
        self.log_path.touch(exist_ok=True)

    def on_state_change(self, state) -> None:
        """Append an event only when the session state changes."""
        value = getattr(state, "value", state)
        if value == self.last_state:
            return
        self._write({"event": "state_change", "state": value})
        self.last_state = value

    def on_error(self, kind: str, message: str) -> None:
        self._write({"event": "error", "kind": kind, "message": message})

    def _write(self, event: dict) -> None:
        event = {"time_s": round(time.time(), 3), **event}
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event) + "\n")
