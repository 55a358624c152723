from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, Dict, List

from backdrop.utils.logger import get_logger

ERROR = "error"
FRAME_READY = "frame_ready"
STATE_CHANGE = "state_change"

EVENTS = (ERROR, FRAME_READY, STATE_CHANGE)


class EventEmitter:
    """
    Listener registry for pipeline notifications.

      error(kind: str, message: str)
      frame_ready(composite: Composite)
      state_change(state: SessionState)
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self.logger = get_logger(__name__)

    def subscribe(self, event: str, listener: Callable[..., Any]) -> Callable[[], None]:
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

        return unsubscribe

    def emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:
                # Listener failures are logged; dispatch continues.
                self.logger.exception("Listener %r failed on %s", listener, event)
