"""Domain event constants and a per-session publisher.

Each questionnaire session owns one `EventPublisher`; events are logged for
observability, buffered for test observation and delivered to subscribers
(the UI shell turns them into notifications).
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, List
import logging

logger = logging.getLogger(__name__)

TEMPLATE_FALLBACK_USED = "template.fallback_used"
DRAFT_RECOVERED = "draft.recovered"
DRAFT_DISCARDED = "draft.discarded"
DRAFT_SAVED_LOCALLY = "draft.saved_locally"
DRAFT_SYNCED = "draft.synced"
SYNC_PENDING = "sync.pending"
SYNC_WARNING = "sync.warning"
STORAGE_DEGRADED = "storage.degraded"
NETWORK_RECONNECTED = "network.reconnected"
NETWORK_DISCONNECTED = "network.disconnected"
SUBMISSION_SUCCEEDED = "submission.succeeded"
SUBMISSION_FAILED = "submission.failed"

# Oldest events are dropped beyond this many
EVENT_BUFFER_LIMIT = 500

Subscriber = Callable[[str, Dict[str, Any]], None]


class EventPublisher:
    def __init__(self, buffer_limit: int = EVENT_BUFFER_LIMIT) -> None:
        self._buffer: Deque[Dict[str, Any]] = deque(maxlen=buffer_limit)
        self._subscribers: List[Subscriber] = []

    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info("event_publish type=%s payload=%s", event_type, payload)
        self._buffer.append({"type": event_type, "payload": dict(payload)})
        for subscriber in list(self._subscribers):
            try:
                subscriber(event_type, payload)
            except Exception:
                # A broken subscriber must not interrupt the engine
                logger.error("event_subscriber_failed type=%s", event_type, exc_info=True)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def get_buffered_events(self, clear: bool = True) -> List[Dict[str, Any]]:
        """Return buffered events; optionally clear the buffer."""
        events = list(self._buffer)
        if clear:
            self._buffer.clear()
        return events

    def types(self) -> List[str]:
        return [e["type"] for e in self._buffer]


__all__ = [
    "TEMPLATE_FALLBACK_USED",
    "DRAFT_RECOVERED",
    "DRAFT_DISCARDED",
    "DRAFT_SAVED_LOCALLY",
    "DRAFT_SYNCED",
    "SYNC_PENDING",
    "SYNC_WARNING",
    "STORAGE_DEGRADED",
    "NETWORK_RECONNECTED",
    "NETWORK_DISCONNECTED",
    "SUBMISSION_SUCCEEDED",
    "SUBMISSION_FAILED",
    "EVENT_BUFFER_LIMIT",
    "EventPublisher",
]
