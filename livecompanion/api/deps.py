# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""API dependencies for dependency injection.

All long-lived services are created by the app factory and kept on
``app.state``; endpoints receive them through these functions.
"""

from fastapi import Request

from livecompanion.automation.engine import AutomationEngine
from livecompanion.config import Settings
from livecompanion.events.bus import EventBus
from livecompanion.events.core import StreamStateTracker
from livecompanion.extensions.channels import ChannelHub
from livecompanion.extensions.runtime import ExtensionRuntime
from livecompanion.services.settings_store import SettingsStore


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_runtime(request: Request) -> ExtensionRuntime:
    """Get the extension runtime."""
    return request.app.state.runtime


def get_engine(request: Request) -> AutomationEngine:
    """Get the automation engine."""
    return request.app.state.engine


def get_bus(request: Request) -> EventBus:
    return request.app.state.bus


def get_hub(request: Request) -> ChannelHub:
    return request.app.state.hub


def get_tracker(request: Request) -> StreamStateTracker:
    return request.app.state.tracker


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store
