"""Two-state connectivity monitor driven by the host's online/offline signal."""

from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

RECONNECTED = "reconnected"
DISCONNECTED = "disconnected"

NetworkListener = Callable[[str], None]


class NetworkMonitor:
    def __init__(self, online: bool = True) -> None:
        self._online = bool(online)
        self._listeners: List[NetworkListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Feed a connectivity signal; only real transitions emit events."""
        online = bool(online)
        if online == self._online:
            return
        self._online = online
        transition = RECONNECTED if online else DISCONNECTED
        logger.info("network_transition event=%s", transition)
        for listener in list(self._listeners):
            listener(transition)

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


__all__ = ["NetworkMonitor", "RECONNECTED", "DISCONNECTED"]
