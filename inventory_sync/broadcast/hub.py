"""
In-process publish/subscribe hub.

Maps each topic to the set of subscribers currently attached to it. Every
subscriber owns a bounded asyncio queue living on the event loop that serves
its WebSocket; publishers may run on any thread (sync request handlers run in
the threadpool) and hand messages over with ``call_soon_threadsafe``.

Delivery is best effort: at most once per connected subscriber, nothing is
persisted, and a subscriber whose queue is full or whose loop has closed
simply misses the message.
"""
import asyncio
import logging
import threading
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


class Subscriber:
    """One connected client's mailbox."""

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 256):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.topics: set[str] = set()
        self.dropped = 0

    def deliver(self, topic: str, message: Any) -> bool:
        """Schedule a message onto the subscriber's loop. Safe from any thread."""
        try:
            self.loop.call_soon_threadsafe(self._put, topic, message)
        except RuntimeError:
            # loop already closed, the connection is going away
            return False
        return True

    def _put(self, topic: str, message: Any) -> None:
        try:
            self.queue.put_nowait((topic, message))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Subscriber queue full, dropped message on '{topic}'")

    async def get(self) -> tuple[str, Any]:
        return await self.queue.get()


class BroadcastHub:
    """
    Topic to subscribers mapping with thread-safe fan-out.

    Fan-out is unconditional: every subscriber of a topic receives every
    message published on it.
    """

    def __init__(self, topics: Iterable[str], queue_size: int = 256):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: dict[str, set[Subscriber]] = {topic: set() for topic in topics}

    @property
    def topics(self) -> tuple[str, ...]:
        return tuple(self._subscribers)

    def attach(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscriber:
        """Create a subscriber bound to ``loop`` (default: the running loop)."""
        return Subscriber(loop or asyncio.get_running_loop(), maxsize=self.queue_size)

    def subscribe(self, subscriber: Subscriber, topic: str) -> None:
        """
        Register a subscriber on a topic.

        Raises:
            ValueError: If the topic is unknown
        """
        with self._lock:
            if topic not in self._subscribers:
                raise ValueError(f"Unknown topic '{topic}'")
            self._subscribers[topic].add(subscriber)
            subscriber.topics.add(topic)

    def unsubscribe(self, subscriber: Subscriber, topic: str) -> None:
        with self._lock:
            self._subscribers.get(topic, set()).discard(subscriber)
            subscriber.topics.discard(topic)

    def detach(self, subscriber: Subscriber) -> None:
        """Remove a subscriber from every topic."""
        with self._lock:
            for subscribers in self._subscribers.values():
                subscribers.discard(subscriber)
            subscriber.topics.clear()

    def publish(self, topic: str, message: Any) -> int:
        """
        Fan a message out to every subscriber of ``topic``.

        Returns:
            Number of subscribers the message was handed to
        """
        with self._lock:
            targets = list(self._subscribers.get(topic, ()))

        delivered = 0
        for subscriber in targets:
            if subscriber.deliver(topic, message):
                delivered += 1
            else:
                self.detach(subscriber)
        logger.debug(f"Published on '{topic}' to {delivered} subscriber(s)")
        return delivered

    def subscriber_counts(self) -> dict[str, int]:
        with self._lock:
            return {topic: len(subscribers) for topic, subscribers in self._subscribers.items()}
