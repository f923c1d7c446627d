# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Contract for live-event sources.

A concrete adapter owns the platform connection and its wire protocol; it
only has to turn platform callbacks into ``emit`` calls. Everything past
``emit`` (core handlers, extensions, automation) is shared.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from livecompanion.events.bus import EventBus, LiveEvent, LiveEventType

logger = logging.getLogger(__name__)


def normalize_payload(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill in the stable payload fields every event carries.

    ``username`` is the actor identifier, ``nickname`` the display name.
    Event-specific fields are passed through unchanged.
    """
    data = dict(raw)
    username = (
        data.get("username")
        or data.get("uniqueId")
        or data.get("userId")
        or ""
    )
    data["username"] = username
    data["nickname"] = data.get("nickname") or username
    data.setdefault("userId", data.get("uniqueId") or username)
    data.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return data


class EventSourceAdapter(ABC):
    """Base class for the external producer of live events."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self.connected = False
        self.target: str | None = None

    @abstractmethod
    async def connect(self, target: str) -> None:
        """Connect to a live stream (e.g. a streamer's username)."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    async def emit(
        self,
        event_type: LiveEventType,
        raw: dict[str, Any] | None = None,
    ) -> LiveEvent:
        """Normalize a raw platform event and publish it on the bus."""
        if event_type == LiveEventType.CONNECTED:
            self.connected = True
        elif event_type == LiveEventType.DISCONNECTED:
            self.connected = False

        data = normalize_payload(raw or {})
        logger.debug(f"Live event {event_type.value} from {data['username']}")
        return await self._bus.publish(event_type, data)
