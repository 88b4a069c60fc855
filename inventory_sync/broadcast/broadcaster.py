import logging
from functools import lru_cache
from typing import Any, Optional

from inventory_sync.broadcast.hub import BroadcastHub
from inventory_sync.broadcast.redis_relay import RedisRelay
from inventory_sync.config import get_settings
from inventory_sync.schemas.events import CHANGES_TOPIC, NOTIFICATIONS_TOPIC, TOPICS, ChangeEvent

logger = logging.getLogger(__name__)


class Broadcaster:
    """
    Best-effort broadcast of inventory changes and notifications.

    Guarantees nothing beyond at-most-once delivery to the clients connected
    at publish time: no ordering across reconnects, no persistence, no
    acknowledgement. Callers publish only after their database commit.
    """

    def __init__(self, hub: BroadcastHub, relay: Optional[RedisRelay] = None):
        self.hub = hub
        self.relay = relay

    def best_effort_broadcast(self, topic: str, message: Any) -> None:
        if self.relay is not None:
            self.relay.publish(topic, message)
        else:
            self.hub.publish(topic, message)

    def publish_change(self, event: ChangeEvent) -> None:
        """Broadcast a structured change event on the changes topic."""
        self.best_effort_broadcast(CHANGES_TOPIC, event.model_dump(mode="json"))
        logger.info(f"Broadcast '{event.action}' for product #{event.product.id}")

    def publish_notification(self, text: str) -> None:
        """Broadcast an advisory notification."""
        self.best_effort_broadcast(NOTIFICATIONS_TOPIC, text)


@lru_cache()
def get_broadcaster() -> Broadcaster:
    """Process-wide broadcaster built from settings."""
    settings = get_settings()
    hub = BroadcastHub(TOPICS, queue_size=settings.BROADCAST_QUEUE_SIZE)

    relay = None
    if settings.BROADCAST_BACKEND == "redis":
        relay = RedisRelay(settings.REDIS_URL, hub)
    elif settings.BROADCAST_BACKEND != "memory":
        raise ValueError(f"Unknown BROADCAST_BACKEND '{settings.BROADCAST_BACKEND}'")

    return Broadcaster(hub, relay)
