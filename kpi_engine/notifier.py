"""
Change Notifier Module
Process-local publish/subscribe fan-out of run and snapshot events.

This is not a durable queue. Delivery is at-most-once and in-memory only:
a subscriber that attaches after a publish never sees that event, and a
subscriber whose buffer is full loses new events. Consumers that need
replay should poll the run-log and snapshot tables instead.

Topics: run-status-changed, project-kpi-updated (plus a per-project
project-kpi-updated:<id>) and sprint-kpi-updated. The API layer publishes
dashboard-updated on its own bus.
"""

import queue
import threading
from typing import Any, Dict, Iterator, List, Optional

from kpi_engine.utils.logger import get_logger

logger = get_logger(__name__)

# Topics
RUN_STATUS_CHANGED = 'run-status-changed'
PROJECT_KPI_UPDATED = 'project-kpi-updated'
SPRINT_KPI_UPDATED = 'sprint-kpi-updated'

DEFAULT_QUEUE_SIZE = 100

_CLOSED = object()


class SubscriptionClosed(Exception):
    """Raised by Subscription.get() once the subscription is closed."""


def project_topic(project_id: int) -> str:
    """Topic carrying updates for a single project."""
    return f"{PROJECT_KPI_UPDATED}:{project_id}"


class Subscription:
    """A stream of payloads published to one topic after subscribing."""

    def __init__(self, notifier: 'ChangeNotifier', topic: str, maxsize: int):
        self.topic = topic
        self._notifier = notifier
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.closed = False

    def _deliver(self, payload: Any) -> bool:
        try:
            self._queue.put_nowait(payload)
            return True
        except queue.Full:
            return False

    def get(self, timeout: Optional[float] = None) -> Any:
        """
        Wait for the next payload.

        Raises:
            queue.Empty: If nothing arrives within timeout
            SubscriptionClosed: If the subscription was closed
        """
        if self.closed and self._queue.empty():
            raise SubscriptionClosed(self.topic)

        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            raise SubscriptionClosed(self.topic)
        return item

    def pending(self) -> List[Any]:
        """Drain and return every payload already delivered."""
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is _CLOSED:
                return items
            items.append(item)

    def close(self) -> None:
        """Detach from the notifier and end iteration."""
        if self.closed:
            return
        self.closed = True
        self._notifier._unsubscribe(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            pass  # iteration ends once the backlog drains via closed flag

    def __iter__(self) -> Iterator[Any]:
        while True:
            if self.closed and self._queue.empty():
                return
            try:
                yield self.get()
            except SubscriptionClosed:
                return

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ChangeNotifier:
    """Thread-safe in-memory topic bus."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, maxsize: Optional[int] = None) -> Subscription:
        """Attach a new subscription to a topic."""
        subscription = Subscription(self, topic, maxsize or self.queue_size)
        with self._lock:
            self._subscriptions.setdefault(topic, []).append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscriptions.pop(subscription.topic, None)

    def publish(self, topic: str, payload: Any) -> int:
        """
        Deliver a payload to the topic's current subscribers.

        Returns:
            Number of subscribers that received it
        """
        with self._lock:
            subscribers = list(self._subscriptions.get(topic, []))

        delivered = 0
        for subscription in subscribers:
            if subscription._deliver(payload):
                delivered += 1
            else:
                logger.warning(f"Dropped '{topic}' event: subscriber buffer full")

        logger.debug(f"Published '{topic}' to {delivered}/{len(subscribers)} subscribers")
        return delivered

    def subscriber_count(self, topic: str) -> int:
        """Number of subscriptions attached to a topic."""
        with self._lock:
            return len(self._subscriptions.get(topic, []))
