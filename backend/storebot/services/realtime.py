"""
Realtime Bus — in-process publish/subscribe used to push dashboard updates.

Delivery is at-least-once best effort and unordered across topics; a failing
subscriber is logged and skipped.
"""
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Dict[str, Any]], None]

THREAD_UPDATED = "support:thread-updated"
NOTIFICATION_CREATED = "notification:created"


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


class RealtimeBus:

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register `callback(event, payload)` for a topic; returns an unsubscribe function."""
        with self._lock:
            self._subscribers[topic].append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers.get(topic, []):
                    self._subscribers[topic].remove(callback)

        return unsubscribe

    def publish(self, topic: str, event: str, payload: Dict[str, Any]) -> int:
        """Deliver an event to every subscriber of `topic`; returns the delivered count."""
        with self._lock:
            subscribers = list(self._subscribers.get(topic, []))

        delivered = 0
        for callback in subscribers:
            try:
                callback(event, payload)
                delivered += 1
            except Exception:
                logger.exception("Realtime subscriber failed on %s (%s)", topic, event)
        return delivered
