"""Observer channel for transport outcomes (``logged`` and ``error`` events)."""

from typing import Any
from typing import Callable
from typing import Dict
from typing import List

from loguru import logger

Listener = Callable[[Any], Any]


class EventChannel:
    """Minimal listener registry; one payload per event."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Register ``listener`` for ``event`` and return it (usable as a decorator)."""
        self._listeners.setdefault(event, []).append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove a previously registered listener; unknown listeners are ignored."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, payload: Any) -> bool:
        """
        Call every listener of ``event`` with ``payload``.

        A failing listener is logged and does not stop the others.
        Returns True if the event had listeners.
        """
        listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                listener(payload)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Transport event listener failed", event=event)
        return bool(listeners)
