"""Subscriber lists keyed by event name."""

import logging
from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)

EVENT_CONNECTED = "connected"
EVENT_DISCONNECTED = "disconnected"
EVENT_STATUS_DATA = "status_data"
EVENT_STATUS = "status"
EVENT_FRAME = "frame"
EVENT_FRAME_ERROR = "frame_error"
EVENT_ERROR = "error"
EVENT_UNCONFIRMED = "unconfirmed"


class EventEmitter:
    """Synchronous fan-out to listeners registered per event name.

    A listener that raises is logged and skipped; the remaining listeners
    still run.
    """

    def __init__(self):
        self._listeners: dict[str, list[Callable]] = {}

    def on(self, event: str, callback: Callable) -> Callable[[], None]:
        """Subscribe; returns a function that removes the subscription."""
        self._listeners.setdefault(event, []).append(callback)
        return lambda: self.off(event, callback)

    def off(self, event: str, callback: Callable) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(callback)
        except ValueError:
            return
        if not listeners:
            del self._listeners[event]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args) -> None:
        for callback in list(self._listeners.get(event, ())):
            try:
                callback(*args)
            except Exception:
                _LOGGER.exception("Listener for %s event failed", event)
