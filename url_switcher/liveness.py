from __future__ import annotations

import logging
from collections.abc import Callable

_LOGGER = logging.getLogger("url_switcher.liveness")

LivenessListener = Callable[[bool], None]


class LivenessNotifier:
    """Peer-connected flag with change subscriptions.

    `observe()` is fed by the owning broker; listeners fire once per actual transition and
    never on a repeated observation of the same state.
    """

    def __init__(self, *, connected: bool = False) -> None:
        self._connected = bool(connected)
        self._listeners: list[LivenessListener] = []

    def is_connected(self) -> bool:
        return self._connected

    def on_change(self, listener: LivenessListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def observe(self, connected: bool) -> bool:
        connected = bool(connected)
        if connected == self._connected:
            return False
        self._connected = connected
        _LOGGER.info("peer %s", "connected" if connected else "disconnected")
        for listener in list(self._listeners):
            try:
                listener(connected)
            except Exception:
                _LOGGER.exception("liveness listener failed")
        return True


__all__ = ["LivenessListener", "LivenessNotifier"]
