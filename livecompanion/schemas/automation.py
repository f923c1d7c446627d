# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Pydantic schemas for automation introspection endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from livecompanion.events.bus import LiveEventType
from livecompanion.schemas.flow import ExecutionRecordResponse


class RegistryListResponse(BaseModel):
    """Trigger, condition and action definitions for building a UI."""

    triggers: list[dict[str, Any]]
    conditions: list[dict[str, Any]]
    actions: list[dict[str, Any]]


class HistoryResponse(BaseModel):
    executions: list[ExecutionRecordResponse]


class VariableResponse(BaseModel):
    name: str
    value: Any = None
    updated_at: datetime


class VariableListResponse(BaseModel):
    variables: list[VariableResponse]


class VariableSet(BaseModel):
    value: Any = None


class EventInjectRequest(BaseModel):
    """A synthetic live event for testing flows and extensions."""

    event_type: LiveEventType
    data: dict[str, Any] = Field(default_factory=dict)


class EventInjectResponse(BaseModel):
    success: bool
    event: dict[str, Any]
    executions: int
    message: str = ""


class TriggerFireRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)


class StreamStatsResponse(BaseModel):
    connected: bool
    viewers: int
    total_coins: int
    gifts: int
    likes: int
    followers: int
    shares: int
    subscribers: int
    chat_messages: int
