"""Host-facing engine events.

Listeners subscribe per event kind and are called once per occurrence, in
subscription order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class EventKind(Enum):
    """Kinds of events raised by the engine."""

    SESSION_READY = "session-ready"
    UPDATE = "update"
    STDERR = "stderr"
    ERROR = "error"
    PROCESS_CLOSED = "process-closed"


class EventEmitter:
    """Minimal observer registry keyed by EventKind."""

    def __init__(self) -> None:
        """Initialize with no listeners."""
        self._listeners: dict[EventKind, list[Listener]] = {kind: [] for kind in EventKind}

    def on(self, kind: EventKind, listener: Listener) -> Listener:
        """Subscribe a listener.

        Args:
            kind: Event kind to listen for.
            listener: Called with the event payload.

        Returns:
            The listener.
        """
        self._listeners[kind].append(listener)
        return listener

    def off(self, kind: EventKind, listener: Listener) -> None:
        """Unsubscribe a listener (no-op if not subscribed)."""
        if listener in self._listeners[kind]:
            self._listeners[kind].remove(listener)

    def emit(self, kind: EventKind, payload: Any = None) -> None:
        """Deliver an event to every current listener.

        A failing listener is logged and does not prevent delivery to the
        remaining listeners.
        """
        for listener in list(self._listeners[kind]):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s event failed", kind.value)
