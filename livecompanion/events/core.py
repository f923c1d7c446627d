# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Core feature handlers that run before extensions see an event."""

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from livecompanion.events.bus import EventBus, LiveEvent, LiveEventType

if TYPE_CHECKING:
    from livecompanion.extensions.channels import ChannelHub

logger = logging.getLogger(__name__)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class StreamStats:
    connected: bool = False
    viewers: int = 0
    total_coins: int = 0
    gifts: int = 0
    likes: int = 0
    followers: int = 0
    shares: int = 0
    subscribers: int = 0
    chat_messages: int = 0


class StreamStateTracker:
    """Keeps running stream statistics.

    The stats are exposed to flows as the ``stream`` context object, so a
    condition can test e.g. ``stream.total_coins >= 1000``.
    """

    def __init__(self) -> None:
        self.stats = StreamStats()

    def __call__(self, event: LiveEvent) -> None:
        data = event.data
        event_type = event.event_type
        if event_type == LiveEventType.CONNECTED:
            self.stats = StreamStats(connected=True)
        elif event_type == LiveEventType.DISCONNECTED:
            self.stats.connected = False
        elif event_type == LiveEventType.GIFT:
            self.stats.gifts += 1
            self.stats.total_coins += _as_int(data.get("coins"))
        elif event_type == LiveEventType.LIKE:
            self.stats.likes += _as_int(data.get("likeCount"), 1)
        elif event_type == LiveEventType.FOLLOW:
            self.stats.followers += 1
        elif event_type == LiveEventType.SHARE:
            self.stats.shares += 1
        elif event_type == LiveEventType.SUBSCRIBE:
            self.stats.subscribers += 1
        elif event_type == LiveEventType.CHAT:
            self.stats.chat_messages += 1
        elif event_type == LiveEventType.VIEWER_COUNT:
            self.stats.viewers = _as_int(data.get("viewerCount"))

    def as_context(self) -> dict[str, Any]:
        return asdict(self.stats)


class ChannelRelay:
    """Forwards every live event to connected channels as ``live:<type>``."""

    def __init__(self, hub: "ChannelHub") -> None:
        self._hub = hub

    async def __call__(self, event: LiveEvent) -> None:
        await self._hub.broadcast(f"live:{event.event_type.value}", event.data)


def register_core_handlers(
    bus: EventBus,
    tracker: StreamStateTracker,
    hub: "ChannelHub",
) -> None:
    """Install the core handlers in their fixed order."""
    bus.register_core_handler(tracker)
    bus.register_core_handler(ChannelRelay(hub))
