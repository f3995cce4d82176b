"""Fan-out of live metric updates to connected subscribers.

Each subscriber owns a bounded FIFO queue. Publishing only enqueues, so a
slow or dead connection never stalls the publisher or its siblings; the
connection's own task drains the queue at its own pace.
"""

import asyncio
import logging
import threading
import uuid

from insightops.core.models import METRIC_UPDATED, BroadcastMessage

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class Subscriber:
    """Handle for one live connection registered with a Broadcaster.

    The handle does not own the connection's socket; it only buffers
    messages until the connection's pump task picks them up.

    Args:
        max_queue_size: Messages buffered before the subscriber is dropped.
    """

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._id = uuid.uuid4().hex
        self._queue: asyncio.Queue[BroadcastMessage] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def id(self) -> str:
        return self._id

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, message: BroadcastMessage) -> bool:
        """Enqueue a message without waiting.

        Returns:
            False if the subscriber is closed or its queue is full.
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """Mark the subscriber closed. Safe to call more than once."""
        if not self._closed:
            self._closed = True
            self._closed_event.set()

    async def receive(self) -> BroadcastMessage | None:
        """Wait for the next message.

        Messages queued before closing are still returned.

        Returns:
            The next message, or None once closed and drained.
        """
        if not self._queue.empty():
            return self._queue.get_nowait()
        if self._closed:
            return None
        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._closed_event.wait())
        try:
            done, _ = await asyncio.wait(
                {getter, closer}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (getter, closer):
                if not task.done():
                    task.cancel()
        if getter in done:
            return getter.result()
        return None

    def drain(self) -> list[BroadcastMessage]:
        """Return every queued message without waiting."""
        messages: list[BroadcastMessage] = []
        while not self._queue.empty():
            messages.append(self._queue.get_nowait())
        return messages


class Broadcaster:
    """Publish/subscribe channel for live dashboard updates.

    Example:
        ```python
        broadcaster = Broadcaster()
        subscriber = broadcaster.subscribe()
        broadcaster.publish(BroadcastMessage("MetricsUpdate", {"cpuUsagePercent": 12.5}))
        message = await subscriber.receive()
        broadcaster.unsubscribe(subscriber)
        ```
    """

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        """Initialize with no subscribers.

        Args:
            max_queue_size: Per-subscriber buffer size. A subscriber whose
                buffer is full when a message is published is dropped.
        """
        if max_queue_size <= 0:
            raise ValueError("max_queue_size must be positive")
        self._max_queue_size = max_queue_size
        self._lock = threading.Lock()
        self._subscribers: dict[str, Subscriber] = {}
        self._last_message: dict[str, BroadcastMessage] = {}

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def last_message(self, event: str) -> BroadcastMessage | None:
        """Most recently published message for an event name."""
        with self._lock:
            return self._last_message.get(event)

    def subscribe(self) -> Subscriber:
        """Register a new subscriber and return its handle."""
        subscriber = Subscriber(self._max_queue_size)
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
        logger.debug("Subscriber connected", extra={"subscriber_id": subscriber.id})
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> bool:
        """Remove a subscriber and close its handle.

        Returns:
            True if the subscriber was registered, False if it was already
            removed.
        """
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
        subscriber.close()
        if removed is not None:
            logger.debug("Subscriber removed", extra={"subscriber_id": subscriber.id})
        return removed is not None

    def publish(self, message: BroadcastMessage) -> int:
        """Deliver a message to every registered subscriber.

        Subscribers that are closed or cannot accept the message are
        unsubscribed. Never raises because of a subscriber.

        Returns:
            Number of subscribers that accepted the message.
        """
        with self._lock:
            self._last_message[message.event] = message
            targets = list(self._subscribers.values())
        delivered = 0
        for subscriber in targets:
            if subscriber.offer(message):
                delivered += 1
                continue
            if not subscriber.closed:
                logger.warning(
                    "Dropping subscriber with full queue",
                    extra={"subscriber_id": subscriber.id},
                )
            self.unsubscribe(subscriber)
        return delivered

    def publish_metric(self, service: str, metric: str, value: float) -> int:
        """Publish a single metric change as a MetricUpdated event."""
        return self.publish(
            BroadcastMessage(
                METRIC_UPDATED,
                {"service": service, "metric": metric, "value": value},
            )
        )
