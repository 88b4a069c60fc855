"""
WebSocket push channel.

A single endpoint carries both topics. Clients drive their subscriptions
with small JSON frames and receive every message published on the topics
they hold:

    -> {"type": "subscribe", "topic": "inventory-changes"}
    <- {"type": "subscribed", "topic": "inventory-changes"}
    <- {"type": "event", "topic": "inventory-changes", "data": {"action": "added", "product": {...}}}
    -> {"type": "unsubscribe", "topic": "inventory-changes"}
    <- {"type": "unsubscribed", "topic": "inventory-changes"}
    -> {"type": "ping"}
    <- {"type": "pong"}

Subscriptions live as long as the connection. A reconnecting client
subscribes again.
"""
import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from inventory_sync.broadcast.broadcaster import Broadcaster, get_broadcaster
from inventory_sync.broadcast.hub import BroadcastHub, Subscriber

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def inventory_socket(websocket: WebSocket, broadcaster: Broadcaster = Depends(get_broadcaster)):
    """Push channel for inventory changes and notifications."""
    hub = broadcaster.hub
    await websocket.accept()
    subscriber = hub.attach()
    logger.info(f"Push client connected from {websocket.client}")

    sender = asyncio.create_task(_pump(websocket, subscriber))
    try:
        await _receive(websocket, hub, subscriber)
    except WebSocketDisconnect:
        pass
    finally:
        hub.detach(subscriber)
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
        logger.info(f"Push client disconnected from {websocket.client}")


async def _receive(websocket: WebSocket, hub: BroadcastHub, subscriber: Subscriber) -> None:
    while True:
        raw = await websocket.receive_text()
        try:
            frame = json.loads(raw)
        except ValueError:
            await websocket.send_json({"type": "error", "detail": "Frame is not valid JSON"})
            continue

        kind = frame.get("type") if isinstance(frame, dict) else None
        topic = frame.get("topic") if isinstance(frame, dict) else None

        if kind in ("subscribe", "unsubscribe") and not isinstance(topic, str):
            await websocket.send_json({"type": "error", "detail": "Topic must be a string"})
        elif kind == "subscribe":
            try:
                hub.subscribe(subscriber, topic)
            except ValueError as e:
                await websocket.send_json({"type": "error", "topic": topic, "detail": str(e)})
                continue
            await websocket.send_json({"type": "subscribed", "topic": topic})
        elif kind == "unsubscribe":
            hub.unsubscribe(subscriber, topic)
            await websocket.send_json({"type": "unsubscribed", "topic": topic})
        elif kind == "ping":
            await websocket.send_json({"type": "pong"})
        else:
            await websocket.send_json({"type": "error", "detail": f"Unknown frame type '{kind}'"})


async def _pump(websocket: WebSocket, subscriber: Subscriber) -> None:
    while True:
        topic, message = await subscriber.get()
        await websocket.send_json({"type": "event", "topic": topic, "data": message})
