# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Pydantic schemas for extension API endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from livecompanion.extensions.base import ExtensionState


class ExtensionRouteInfo(BaseModel):
    method: str
    path: str


class PermissionInfo(BaseModel):
    """A requested permission as shown to the operator."""

    value: str
    label: str
    dangerous: bool


class ExtensionSummary(BaseModel):
    """Extension details for list and detail views."""

    id: str
    name: str
    version: str
    description: str = ""
    author: str = ""
    type: str = "extension"
    entry: str
    state: ExtensionState
    error: str | None = None
    permissions: list[str] = []
    permission_details: list[PermissionInfo] = []
    dependencies: list[str] = []
    loaded_at: datetime | None = None
    reload_count: int = 0
    routes: list[ExtensionRouteInfo] = []
    channels: list[str] = []
    events: list[str] = []


class ExtensionListResponse(BaseModel):
    """Response for extension list endpoint."""

    extensions: list[ExtensionSummary]


class ExtensionActionResponse(BaseModel):
    """Response after a lifecycle operation on one extension."""

    success: bool
    extension_id: str
    state: ExtensionState
    error: str | None = None
    message: str = ""


class ExtensionInstallResponse(BaseModel):
    """Response after a package upload."""

    success: bool
    extension_id: str
    name: str
    version: str
    state: ExtensionState
    error: str | None = None
    message: str = ""


class ReloadAllResponse(BaseModel):
    success: bool
    states: dict[str, ExtensionState]
    message: str = ""


class LogEntry(BaseModel):
    timestamp: str
    level: str
    logger: str
    extension_id: str | None = None
    message: str


class LogListResponse(BaseModel):
    logs: list[LogEntry]


class ExtensionConfigResponse(BaseModel):
    extension_id: str
    config: dict[str, Any]
