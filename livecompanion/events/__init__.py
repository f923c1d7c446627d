# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Live event types, the event bus and core handlers."""

from livecompanion.events.bus import EventBus, LiveEvent, LiveEventType
from livecompanion.events.core import StreamStateTracker, register_core_handlers
from livecompanion.events.source import EventSourceAdapter, normalize_payload

__all__ = [
    "EventBus",
    "LiveEvent",
    "LiveEventType",
    "StreamStateTracker",
    "register_core_handlers",
    "EventSourceAdapter",
    "normalize_payload",
]
