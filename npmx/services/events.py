"""Named synchronous signals for cross-consumer invalidation."""

from __future__ import annotations

from typing import Any, Callable

from npmx.logging import logger

Listener = Callable[[Any], None]


class Signal:
    """Fire-and-forget observer list.

    ``send`` delivers to the listeners registered at call time, in
    registration order. A listener that raises is logged and skipped.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[Listener] = []

    def connect(self, listener: Listener) -> Callable[[], None]:
        if listener not in self._listeners:
            self._listeners.append(listener)

        def _disconnect() -> None:
            self.disconnect(listener)

        return _disconnect

    def disconnect(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def receivers(self) -> int:
        return len(self._listeners)

    def send(self, payload: Any = None) -> int:
        delivered = 0
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("signal_listener_failed", signal=self.name)
                continue
            delivered += 1
        return delivered


__all__ = ["Listener", "Signal"]
