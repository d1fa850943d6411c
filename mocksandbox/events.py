"""Per-run event channel.

Each pipeline run owns one EventChannel. Subscribers receive every event
emitted during that run and nothing from other runs.

Example:
    >>> events = EventChannel()
    >>> unsubscribe = events.subscribe(lambda event, payload: print(event.value))
    >>> run_all("./my-app", events=events)
    >>> unsubscribe()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Named lifecycle events."""

    DETECTED = "detected"
    DISCOVERED = "discovered"
    SYNTHESIS_REQUEST = "synthesis-request"
    SYNTHESIS_RESPONSE = "synthesis-response"
    ARTIFACTS_WRITTEN = "artifacts-written"
    SERVICES_UP = "services-up"
    SERVICES_DOWN = "services-down"


EventCallback = Callable[[EventType, dict[str, Any]], None]


class EventChannel:
    """Synchronous fan-out of lifecycle events to subscribers."""

    def __init__(self) -> None:
        self._callbacks: list[EventCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: EventCallback) -> None:
        with self._lock:
            self._callbacks = [cb for cb in self._callbacks if cb is not callback]

    def emit(self, event: EventType, payload: dict[str, Any] | None = None) -> None:
        """Deliver an event to every subscriber in subscription order.

        A subscriber that raises is logged and skipped so one broken
        listener cannot abort the run.
        """
        with self._lock:
            callbacks = list(self._callbacks)
        data = payload or {}
        for callback in callbacks:
            try:
                callback(event, data)
            except Exception:
                logger.exception("Event subscriber failed", extra={"event": event.value})

    def clear(self) -> None:
        with self._lock:
            self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)


def emit(events: EventChannel | None, event: EventType, payload: dict[str, Any] | None = None) -> None:
    """Emit on an optional channel."""
    if events is not None:
        events.emit(event, payload)
