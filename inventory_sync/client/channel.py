"""
Reconnecting WebSocket subscription to the push channel.

One long-lived task owns the connection and moves through an explicit
state machine:

    DISCONNECTED -> CONNECTING -> CONNECTED <-> RECONNECTING
                                     |
                                  stop() -> DISCONNECTED (final)

Handlers are registered once per topic and survive reconnects: every
successful (re)connect sends a subscribe frame for each registered topic.
Messages are handed to handlers one at a time, in the order received.
"""
from __future__ import annotations

import asyncio
import enum
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from websockets.exceptions import WebSocketException

from inventory_sync.exceptions import TransportError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[None]]]
StateListener = Callable[["ConnectionState", "ConnectionState"], None]


class ConnectionState(str, enum.Enum):
    """Enum for push channel connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


def backoff_delay(attempt: int, base: float = 0.5, cap: float = 30.0) -> float:
    """Exponential backoff: base, 2*base, 4*base, ... capped at ``cap`` seconds."""
    return min(cap, base * (2 ** attempt))


class BroadcastConnection:
    """Client end of the push channel with automatic reconnection."""

    def __init__(
        self,
        url: str,
        connect: Callable[[str], Any] = None,
        backoff_base: float = 0.5,
        backoff_cap: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.url = url
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.state = ConnectionState.DISCONNECTED
        self.attempt = 0
        self._connect = connect or websockets.connect
        self._sleep = sleep
        self._handlers: dict[str, list[Handler]] = {}
        self._listeners: list[StateListener] = []
        self._socket = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = False

    # Subscriptions

    async def subscribe(self, topic: str, handler: Handler) -> None:
        handlers = self._handlers.setdefault(topic, [])
        first = not handlers
        handlers.append(handler)
        if first and self._socket is not None:
            await self._send({"type": "subscribe", "topic": topic})

    async def unsubscribe(self, topic: str, handler: Handler) -> None:
        handlers = self._handlers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._handlers.pop(topic, None)
            if self._socket is not None:
                await self._send({"type": "unsubscribe", "topic": topic})

    @property
    def topics(self) -> list[str]:
        return list(self._handlers)

    def on_state_change(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    # Lifecycle

    def start(self) -> None:
        if self._task is None:
            self._stopping = False
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Close the connection for good."""
        self._stopping = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def _run(self) -> None:
        self._set_state(ConnectionState.CONNECTING)

        while not self._stopping:
            try:
                await self._session()
            except TransportError as e:
                error = e
            except (WebSocketException, OSError, asyncio.TimeoutError) as e:
                error = TransportError(f"Push channel lost: {e}")
            finally:
                self._socket = None

            if self._stopping:
                break

            delay = backoff_delay(self.attempt, self.backoff_base, self.backoff_cap)
            self.attempt += 1
            logger.warning(f"{error}, reconnecting in {delay:.1f}s (attempt {self.attempt})")
            self._set_state(ConnectionState.RECONNECTING)
            await self._sleep(delay)

        self._set_state(ConnectionState.DISCONNECTED)

    async def _session(self) -> None:
        async with self._connect(self.url) as socket:
            self._socket = socket
            self.attempt = 0
            self._set_state(ConnectionState.CONNECTED)

            for topic in self.topics:
                await socket.send(json.dumps({"type": "subscribe", "topic": topic}))

            async for raw in socket:
                await self._dispatch(raw)

        raise TransportError("Push channel closed by server")

    async def _dispatch(self, raw: Union[str, bytes]) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed frame: {raw!r}")
            return

        kind = frame.get("type") if isinstance(frame, dict) else None
        if kind == "event":
            topic = frame.get("topic")
            for handler in list(self._handlers.get(topic, ())):
                try:
                    result = handler(frame.get("data"))
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception(f"Handler for '{topic}' failed")
        elif kind == "error":
            logger.warning(f"Push channel error: {frame.get('detail')}")
        else:
            logger.debug(f"Push channel frame: {frame}")

    async def _send(self, frame: dict) -> None:
        try:
            await self._socket.send(json.dumps(frame))
        except (WebSocketException, OSError) as e:
            # the run loop notices the broken socket and resubscribes on reconnect
            logger.warning(f"Could not send {frame['type']} frame: {e}")

    def _set_state(self, state: ConnectionState) -> None:
        previous, self.state = self.state, state
        if previous == state:
            return
        logger.info(f"Push channel {previous.value} -> {state.value}")
        for listener in list(self._listeners):
            listener(previous, state)
