# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Pydantic schemas for flow endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ActionStepSchema(BaseModel):
    """One step of a flow's action list."""

    type: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


class FlowBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    trigger_type: str = Field(..., min_length=1, max_length=100)
    trigger_config: dict[str, Any] = Field(default_factory=dict)
    conditions: dict[str, Any] | list[Any] | None = Field(
        default=None,
        description="Leaf {field, operator, value} or group {logic, conditions}",
    )
    actions: list[ActionStepSchema] = Field(default_factory=list)
    enabled: bool = True
    continue_on_error: bool = False
    cooldown_seconds: float = Field(default=0.0, ge=0)


class FlowCreate(FlowBase):
    """Schema for creating a flow."""


class FlowUpdate(BaseModel):
    """Schema for updating a flow; all fields optional."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    trigger_type: str | None = Field(default=None, min_length=1, max_length=100)
    trigger_config: dict[str, Any] | None = None
    conditions: dict[str, Any] | list[Any] | None = None
    actions: list[ActionStepSchema] | None = None
    enabled: bool | None = None
    continue_on_error: bool | None = None
    cooldown_seconds: float | None = Field(default=None, ge=0)


class FlowResponse(FlowBase):
    """Schema for flow response."""

    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FlowTestRequest(BaseModel):
    """Sample event data for a test execution."""

    data: dict[str, Any] | None = None


class ActionOutcomeResponse(BaseModel):
    index: int
    type: str
    status: str
    error: str | None = None
    result: Any = None
    duration_ms: float = 0.0


class ExecutionRecordResponse(BaseModel):
    """One entry of the execution history."""

    id: str
    flow_id: int
    flow_name: str
    trigger: str
    result: str
    success: bool
    timestamp: datetime
    manual: bool = False
    error: str | None = None
    event: dict[str, Any] = Field(default_factory=dict)
    actions: list[ActionOutcomeResponse] = Field(default_factory=list)


class FlowExecutionResponse(BaseModel):
    """Response of a manual or test execution."""

    success: bool
    executed: bool
    message: str = ""
    execution: ExecutionRecordResponse | None = None
