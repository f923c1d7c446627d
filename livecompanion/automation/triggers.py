# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Built-in triggers: one per live event type plus the interval timer."""

from typing import Any

from livecompanion.automation.registries import Registry, TriggerDefinition
from livecompanion.events.bus import LiveEvent, LiveEventType

TIMER_TRIGGER = "timer:interval"
DEFAULT_TIMER_INTERVAL = 60.0


def _match_gift(config: dict[str, Any], event: LiveEvent) -> bool:
    gift_name = config.get("gift_name")
    if gift_name and str(event.data.get("giftName", "")).lower() != str(gift_name).lower():
        return False
    return True


def _match_chat(config: dict[str, Any], event: LiveEvent) -> bool:
    keyword = config.get("keyword")
    if keyword:
        return str(keyword).lower() in str(event.data.get("message", "")).lower()
    return True


_EVENT_TRIGGERS: dict[LiveEventType, dict[str, Any]] = {
    LiveEventType.CHAT: {
        "name": "Chat Message",
        "category": "chat",
        "matcher": _match_chat,
        "fields": [{"name": "keyword", "type": "text", "label": "Message contains"}],
    },
    LiveEventType.GIFT: {
        "name": "Gift Received",
        "category": "gifts",
        "matcher": _match_gift,
        "fields": [{"name": "gift_name", "type": "text", "label": "Gift name"}],
    },
    LiveEventType.FOLLOW: {"name": "New Follower", "category": "social"},
    LiveEventType.SHARE: {"name": "Stream Shared", "category": "social"},
    LiveEventType.LIKE: {"name": "Likes Received", "category": "social"},
    LiveEventType.SUBSCRIBE: {"name": "New Subscriber", "category": "social"},
    LiveEventType.VIEWER_COUNT: {"name": "Viewer Count Update", "category": "stream"},
    LiveEventType.CONNECTED: {"name": "Stream Connected", "category": "stream"},
    LiveEventType.DISCONNECTED: {"name": "Stream Disconnected", "category": "stream"},
    LiveEventType.ERROR: {"name": "Connection Error", "category": "stream"},
}


def register_builtin_triggers(registry: Registry[TriggerDefinition]) -> None:
    for event_type, meta in _EVENT_TRIGGERS.items():
        registry.register(
            TriggerDefinition(
                type=event_type.value,
                name=meta["name"],
                description=f"Fires on every {event_type.value} event",
                category=meta["category"],
                event_types=(event_type,),
                matcher=meta.get("matcher"),
                fields=meta.get("fields", []),
            )
        )

    registry.register(
        TriggerDefinition(
            type=TIMER_TRIGGER,
            name="Interval Timer",
            description="Fires every N seconds while the flow is enabled",
            category="time",
            fields=[
                {
                    "name": "interval_seconds",
                    "type": "number",
                    "label": "Interval (seconds)",
                    "default": DEFAULT_TIMER_INTERVAL,
                }
            ],
            timer=True,
        )
    )
