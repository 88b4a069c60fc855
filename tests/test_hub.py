"""Tests for the in-process broadcast hub."""
import asyncio
import threading

import pytest

from inventory_sync.broadcast.hub import BroadcastHub

TOPICS = ("inventory-changes", "notifications")


async def _drain(subscriber):
    """Let scheduled callbacks run, then return everything queued."""
    await asyncio.sleep(0)
    messages = []
    while not subscriber.queue.empty():
        messages.append(subscriber.queue.get_nowait())
    return messages


@pytest.mark.asyncio
async def test_publish_fans_out_to_topic_subscribers():
    hub = BroadcastHub(TOPICS)
    first, second, other = hub.attach(), hub.attach(), hub.attach()
    hub.subscribe(first, "inventory-changes")
    hub.subscribe(second, "inventory-changes")
    hub.subscribe(other, "notifications")

    delivered = hub.publish("inventory-changes", {"action": "deleted"})

    assert delivered == 2
    assert await _drain(first) == [("inventory-changes", {"action": "deleted"})]
    assert await _drain(second) == [("inventory-changes", {"action": "deleted"})]
    assert await _drain(other) == []


@pytest.mark.asyncio
async def test_unknown_topic_is_rejected():
    hub = BroadcastHub(TOPICS)

    with pytest.raises(ValueError):
        hub.subscribe(hub.attach(), "orders")


@pytest.mark.asyncio
async def test_unsubscribe_and_detach():
    hub = BroadcastHub(TOPICS)
    subscriber = hub.attach()
    hub.subscribe(subscriber, "inventory-changes")
    hub.subscribe(subscriber, "notifications")

    hub.unsubscribe(subscriber, "notifications")
    assert hub.subscriber_counts() == {"inventory-changes": 1, "notifications": 0}

    hub.detach(subscriber)
    assert hub.subscriber_counts() == {"inventory-changes": 0, "notifications": 0}
    assert hub.publish("inventory-changes", "x") == 0


@pytest.mark.asyncio
async def test_full_queue_drops_messages():
    hub = BroadcastHub(TOPICS, queue_size=2)
    subscriber = hub.attach()
    hub.subscribe(subscriber, "notifications")

    for i in range(5):
        hub.publish("notifications", f"message {i}")

    messages = await _drain(subscriber)
    assert [m for _, m in messages] == ["message 0", "message 1"]
    assert subscriber.dropped == 3


@pytest.mark.asyncio
async def test_publish_from_another_thread_preserves_order():
    hub = BroadcastHub(TOPICS)
    subscriber = hub.attach()
    hub.subscribe(subscriber, "inventory-changes")

    def publish_all():
        for i in range(10):
            hub.publish("inventory-changes", i)

    worker = threading.Thread(target=publish_all)
    worker.start()
    worker.join()

    received = [await asyncio.wait_for(subscriber.get(), timeout=1) for _ in range(10)]
    assert [message for _, message in received] == list(range(10))


def test_closed_loop_subscriber_is_detached():
    loop = asyncio.new_event_loop()
    hub = BroadcastHub(TOPICS)
    subscriber = hub.attach(loop)
    hub.subscribe(subscriber, "notifications")
    loop.close()

    assert hub.publish("notifications", "hello") == 0
    assert hub.subscriber_counts()["notifications"] == 0
