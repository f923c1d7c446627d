# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Event bus for live events."""

import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from livecompanion.automation.engine import AutomationEngine

logger = logging.getLogger(__name__)


class LiveEventType(str, Enum):
    """Events emitted by the live-event source."""

    CHAT = "chat"
    GIFT = "gift"
    FOLLOW = "follow"
    SHARE = "share"
    LIKE = "like"
    SUBSCRIBE = "subscribe"
    VIEWER_COUNT = "viewer_count"

    # Connection lifecycle
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass
class LiveEvent:
    """A single event travelling through the bus."""

    event_type: LiveEventType
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def snapshot(self) -> dict[str, Any]:
        return {
            "type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": dict(self.data),
        }


EventHandler = Callable[[LiveEvent], Any]


class EventBus:
    """Single dispatch point for live events.

    For each published event, in this order:

    1. core handlers, in registration order;
    2. extension handlers subscribed to the event type, in subscription
       order, each isolated so a failing handler does not stop the rest;
    3. the automation engine.

    Handlers may be plain functions or coroutine functions.
    """

    def __init__(self) -> None:
        self._core_handlers: list[tuple[LiveEventType | None, EventHandler]] = []
        self._handlers: dict[LiveEventType, list[tuple[str, EventHandler]]] = (
            defaultdict(list)
        )
        self._engine: AutomationEngine | None = None

    def attach_engine(self, engine: "AutomationEngine") -> None:
        """Set the automation engine that receives every event last."""
        self._engine = engine

    def register_core_handler(
        self,
        handler: EventHandler,
        event_type: LiveEventType | None = None,
    ) -> None:
        """Register a host feature handler.

        Args:
            handler: Function receiving the LiveEvent
            event_type: Only deliver this type; None means all events
        """
        self._core_handlers.append((event_type, handler))

    def subscribe(
        self,
        event_type: LiveEventType,
        handler: EventHandler,
        extension_id: str,
    ) -> None:
        """Subscribe an extension handler to an event type.

        Args:
            event_type: Event type to subscribe to
            handler: Function to call when the event fires (sync or async)
            extension_id: Subscribing extension (for unsubscribe and logs)
        """
        self._handlers[event_type].append((extension_id, handler))
        logger.debug(f"Extension {extension_id} subscribed to {event_type.value}")

    def unsubscribe_extension(self, extension_id: str) -> int:
        """Remove all handlers of an extension; returns how many were removed."""
        removed = 0
        for event_type in list(self._handlers.keys()):
            before = len(self._handlers[event_type])
            self._handlers[event_type] = [
                (eid, handler)
                for eid, handler in self._handlers[event_type]
                if eid != extension_id
            ]
            removed += before - len(self._handlers[event_type])

        logger.debug(f"Unsubscribed {removed} handlers of extension {extension_id}")
        return removed

    async def publish(
        self,
        event_type: LiveEventType,
        data: dict[str, Any],
    ) -> LiveEvent:
        """Publish an event to all subscribers and the automation engine.

        Args:
            event_type: Type of event
            data: Event payload

        Returns:
            The dispatched LiveEvent
        """
        event = LiveEvent(event_type=event_type, data=data)
        await self.dispatch(event)
        return event

    async def dispatch(self, event: LiveEvent) -> None:
        event_type = event.event_type

        for only_type, handler in list(self._core_handlers):
            if only_type is not None and only_type != event_type:
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in core handler for {event_type.value}: {e}")

        for extension_id, handler in list(self._handlers.get(event_type, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Error in event handler for {event_type.value} "
                    f"(extension: {extension_id}): {e}",
                    extra={"extension_id": extension_id},
                )

        if self._engine is not None:
            try:
                await self._engine.process_event(event)
            except Exception as e:
                logger.error(f"Automation engine failed on {event_type.value}: {e}")

    def get_subscriber_count(self, event_type: LiveEventType) -> int:
        return len(self._handlers.get(event_type, []))

    def get_subscribed_events(self, extension_id: str) -> list[LiveEventType]:
        """Get all event types an extension is subscribed to."""
        return [
            event_type
            for event_type, handlers in self._handlers.items()
            if any(eid == extension_id for eid, _ in handlers)
        ]
