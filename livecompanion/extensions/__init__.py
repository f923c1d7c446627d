# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Extension system for the live companion.

This module provides the infrastructure for loading, managing, and
running extensions behind a capability-scoped host API.
"""

from livecompanion.extensions.api import ExtensionAPI, ExtensionHost
from livecompanion.extensions.base import (
    BaseExtension,
    ExtensionInstance,
    ExtensionManifest,
    ExtensionState,
    Permission,
)
from livecompanion.extensions.channels import ChannelConnection, ChannelHub
from livecompanion.extensions.loader import (
    ExtensionLoader,
    ExtensionStateFile,
    parse_manifest,
)
from livecompanion.extensions.permissions import CapabilityGrant, PermissionChecker
from livecompanion.extensions.router_proxy import ExtensionRouteTable
from livecompanion.extensions.runtime import ExtensionRuntime

__all__ = [  # noqa: RUF022
    # Base classes
    "BaseExtension",
    "ExtensionManifest",
    "ExtensionInstance",
    "ExtensionState",
    "Permission",
    # Capability API
    "ExtensionAPI",
    "ExtensionHost",
    "CapabilityGrant",
    "PermissionChecker",
    # Transport
    "ChannelHub",
    "ChannelConnection",
    "ExtensionRouteTable",
    # Loading
    "ExtensionLoader",
    "ExtensionStateFile",
    "parse_manifest",
    "ExtensionRuntime",
]
