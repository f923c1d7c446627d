# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Socket channels between extensions and connected clients.

Messages in both directions are JSON objects ``{"event": name, "data": ...}``.
Extension handlers are bound per connection: a connection picks up every
registered handler when it connects (and any registered later), and its
bindings are dropped when it disconnects.
"""

import inspect
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

Sender = Callable[[dict[str, Any]], Awaitable[None]]
ChannelHandler = Callable[["ChannelConnection", Any], Any]

ERROR_EVENT = "plugin:error"


class ChannelConnection:
    """One connected client and the handlers bound to it."""

    def __init__(self, sender: Sender) -> None:
        self.id = uuid.uuid4().hex
        self._sender = sender
        self.bindings: dict[str, list[tuple[str, ChannelHandler]]] = {}

    def bind(self, event: str, extension_id: str, handler: ChannelHandler) -> None:
        self.bindings.setdefault(event, []).append((extension_id, handler))

    def unbind_extension(self, extension_id: str) -> int:
        removed = 0
        for event in list(self.bindings):
            kept = [(eid, h) for eid, h in self.bindings[event] if eid != extension_id]
            removed += len(self.bindings[event]) - len(kept)
            if kept:
                self.bindings[event] = kept
            else:
                del self.bindings[event]
        return removed

    async def send(self, event: str, data: Any = None) -> None:
        await self._sender({"event": event, "data": data})


class ChannelHub:
    """Keeps live connections and extension channel handlers."""

    def __init__(self) -> None:
        self._handlers: list[tuple[str, str, ChannelHandler]] = []
        self._connections: dict[str, ChannelConnection] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register_handler(self, extension_id: str, event: str, handler: ChannelHandler) -> None:
        """Register a handler and bind it on every live connection."""
        self._handlers.append((extension_id, event, handler))
        for connection in self._connections.values():
            connection.bind(event, extension_id, handler)
        logger.debug(f"Extension {extension_id} registered channel {event}")

    def unregister_extension(self, extension_id: str) -> int:
        """Drop an extension's handlers from the hub and every connection."""
        before = len(self._handlers)
        self._handlers = [h for h in self._handlers if h[0] != extension_id]
        for connection in self._connections.values():
            connection.unbind_extension(extension_id)
        return before - len(self._handlers)

    def get_extension_channels(self, extension_id: str) -> list[str]:
        return [event for eid, event, _ in self._handlers if eid == extension_id]

    def connect(self, connection: ChannelConnection) -> None:
        for extension_id, event, handler in self._handlers:
            connection.bind(event, extension_id, handler)
        self._connections[connection.id] = connection
        logger.debug(f"Channel connection {connection.id} opened")

    def disconnect(self, connection: ChannelConnection) -> None:
        self._connections.pop(connection.id, None)
        connection.bindings.clear()
        logger.debug(f"Channel connection {connection.id} closed")

    async def dispatch(self, connection: ChannelConnection, event: str, data: Any) -> int:
        """Run the connection's handlers for an inbound message.

        A failing handler reports ``plugin:error`` to this connection only.

        Returns:
            Number of handlers invoked
        """
        handlers = list(connection.bindings.get(event, []))
        for extension_id, handler in handlers:
            try:
                result = handler(connection, data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Channel handler error in extension {extension_id} ({event}): {e}",
                    extra={"extension_id": extension_id},
                )
                await connection.send(
                    ERROR_EVENT,
                    {"plugin": extension_id, "event": event, "error": str(e)},
                )
        return len(handlers)

    async def broadcast(self, event: str, data: Any = None) -> int:
        """Send a message to every connection.

        Returns:
            Number of connections the message was delivered to
        """
        delivered = 0
        for connection in list(self._connections.values()):
            try:
                await connection.send(event, data)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping channel connection {connection.id}: {e}")
                self.disconnect(connection)
        return delivered

    async def serve(self, websocket: WebSocket) -> None:
        """Run the receive loop for one WebSocket client."""
        await websocket.accept()
        connection = ChannelConnection(websocket.send_json)
        self.connect(connection)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning(f"Ignoring non-JSON channel message on {connection.id}")
                    continue
                if not isinstance(message, dict) or not isinstance(message.get("event"), str):
                    logger.warning(f"Ignoring malformed channel message on {connection.id}")
                    continue
                await self.dispatch(connection, message["event"], message.get("data"))
        except WebSocketDisconnect:
            pass
        finally:
            self.disconnect(connection)
