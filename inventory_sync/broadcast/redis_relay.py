import asyncio
import json
import logging
from typing import Any, Optional

import redis
import redis.asyncio as aioredis

from inventory_sync.broadcast.hub import BroadcastHub

logger = logging.getLogger(__name__)


class RedisRelay:
    """
    Redis pub/sub relay for the broadcast hub.

    Publishers (API processes and Celery workers) push JSON messages to one
    Redis channel per topic. Each API process runs a listener task that
    forwards every message into its local hub, which fans it out to the
    WebSockets connected to that process.

    This service provides methods for:
    - Publishing a message on a topic
    - Listening for messages and relaying them into the hub
    - Reconnecting the listener after Redis failures
    """

    def __init__(self, url: str, hub: BroadcastHub, prefix: str = "inventory", client: redis.Redis = None):
        self.url = url
        self.hub = hub
        self.prefix = prefix
        self.client = client or redis.from_url(url, decode_responses=True)
        self._task: Optional[asyncio.Task] = None

    def _channel(self, topic: str) -> str:
        """Create a namespaced channel name."""
        return f"{self.prefix}:{topic}"

    def _topic(self, channel: str) -> str:
        return channel[len(self.prefix) + 1:]

    def publish(self, topic: str, message: Any) -> bool:
        """
        Publish a message on a topic.

        Args:
            topic: Hub topic name
            message: JSON-serializable payload

        Returns:
            True if Redis accepted the message, False otherwise
        """
        try:
            self.client.publish(self._channel(topic), json.dumps(message, default=str))
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Dropped broadcast on '{topic}': {e}")
            return False

    async def listen(self, retry_delay: float = 1.0, max_delay: float = 30.0) -> None:
        """Relay messages from Redis into the hub until cancelled."""
        channels = [self._channel(topic) for topic in self.hub.topics]
        delay = retry_delay

        while True:
            client = aioredis.from_url(self.url, decode_responses=True)
            pubsub = client.pubsub()
            try:
                await pubsub.subscribe(*channels)
                logger.info(f"Relaying Redis channels {channels}")
                delay = retry_delay
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    self._forward(message["channel"], message["data"])
            except redis.RedisError as e:
                logger.warning(f"Redis relay interrupted: {e}, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)
                delay = min(delay * 2, max_delay)
            finally:
                await pubsub.aclose()
                await client.aclose()

    def _forward(self, channel: str, data: str) -> None:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed message on {channel}")
            return
        self.hub.publish(self._topic(channel), payload)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.listen())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def ping(self) -> bool:
        return self.client.ping()
