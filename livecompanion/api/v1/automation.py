# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Automation introspection API endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from livecompanion.api.deps import get_bus, get_engine, get_tracker
from livecompanion.api.v1.flows import execution_response
from livecompanion.automation.engine import AutomationEngine
from livecompanion.errors import FlowNotFoundError
from livecompanion.events.bus import EventBus
from livecompanion.events.core import StreamStateTracker
from livecompanion.events.source import normalize_payload
from livecompanion.schemas.automation import (
    EventInjectRequest,
    EventInjectResponse,
    HistoryResponse,
    RegistryListResponse,
    StreamStatsResponse,
    TriggerFireRequest,
    VariableListResponse,
    VariableResponse,
    VariableSet,
)
from livecompanion.schemas.common import MessageResponse
from livecompanion.schemas.flow import FlowExecutionResponse, FlowTestRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/automation", tags=["automation"])


@router.get("/registries", response_model=RegistryListResponse)
async def list_registries(
    engine: AutomationEngine = Depends(get_engine),
) -> RegistryListResponse:
    """All trigger, condition and action definitions."""
    return RegistryListResponse(**engine.describe_registries())


@router.get("/triggers", response_model=list[dict[str, Any]])
async def list_triggers(engine: AutomationEngine = Depends(get_engine)) -> list[dict[str, Any]]:
    return engine.registries.triggers.describe_all()


@router.get("/conditions", response_model=list[dict[str, Any]])
async def list_conditions(engine: AutomationEngine = Depends(get_engine)) -> list[dict[str, Any]]:
    return engine.registries.conditions.describe_all()


@router.get("/actions", response_model=list[dict[str, Any]])
async def list_actions(engine: AutomationEngine = Depends(get_engine)) -> list[dict[str, Any]]:
    return engine.registries.actions.describe_all()


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    limit: int = Query(50, ge=1, le=1000),
    flow_id: int | None = None,
    engine: AutomationEngine = Depends(get_engine),
) -> HistoryResponse:
    """Most recent executions first."""
    records = engine.history.recent(limit=limit, flow_id=flow_id)
    return HistoryResponse(executions=[execution_response(r) for r in records])


@router.get("/variables", response_model=VariableListResponse)
async def list_variables(
    engine: AutomationEngine = Depends(get_engine),
) -> VariableListResponse:
    return VariableListResponse(
        variables=[
            VariableResponse(name=v.name, value=v.value, updated_at=v.updated_at)
            for v in engine.variables.all()
        ]
    )


@router.put("/variables/{name}", response_model=VariableResponse)
async def set_variable(
    name: str,
    data: VariableSet,
    engine: AutomationEngine = Depends(get_engine),
) -> VariableResponse:
    variable = engine.variables.set(name, data.value)
    return VariableResponse(name=variable.name, value=variable.value, updated_at=variable.updated_at)


@router.delete("/variables/{name}", response_model=MessageResponse)
async def delete_variable(
    name: str,
    engine: AutomationEngine = Depends(get_engine),
) -> MessageResponse:
    if not engine.variables.delete(name):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Variable {name} not found",
        )
    return MessageResponse(message=f"Variable {name} deleted")


@router.post("/flows/{flow_id}/trigger", response_model=FlowExecutionResponse)
async def trigger_flow(
    flow_id: int,
    request: FlowTestRequest | None = None,
    engine: AutomationEngine = Depends(get_engine),
) -> FlowExecutionResponse:
    """Run a flow by id. Its conditions are evaluated against the data."""
    try:
        record = await engine.trigger_flow(flow_id, request.data if request else None)
    except FlowNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Flow {flow_id} not found",
        ) from e

    if record is None:
        return FlowExecutionResponse(
            success=True,
            executed=False,
            message="Conditions not met",
        )
    return FlowExecutionResponse(
        success=record.success,
        executed=True,
        message=f"Flow {flow_id} executed: {record.result.value}",
        execution=execution_response(record),
    )


@router.post("/triggers/{trigger_type}/fire", response_model=HistoryResponse)
async def fire_trigger(
    trigger_type: str,
    request: TriggerFireRequest,
    engine: AutomationEngine = Depends(get_engine),
) -> HistoryResponse:
    """Fire a trigger type directly, e.g. one contributed by an extension."""
    if not engine.registries.triggers.has(trigger_type):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Trigger {trigger_type} not found",
        )
    records = await engine.fire_trigger(trigger_type, request.data)
    return HistoryResponse(executions=[execution_response(r) for r in records])


@router.post("/events", response_model=EventInjectResponse)
async def inject_event(
    request: EventInjectRequest,
    bus: EventBus = Depends(get_bus),
    engine: AutomationEngine = Depends(get_engine),
) -> EventInjectResponse:
    """Publish a synthetic live event through the full pipeline."""
    before = engine.history.total_recorded
    event = await bus.publish(request.event_type, normalize_payload(request.data))
    executions = engine.history.total_recorded - before
    logger.info(f"Injected {request.event_type.value} event ({executions} executions)")
    return EventInjectResponse(
        success=True,
        event=event.snapshot(),
        executions=executions,
        message=f"Event {request.event_type.value} dispatched",
    )


@router.get("/stream", response_model=StreamStatsResponse)
async def get_stream_stats(
    tracker: StreamStateTracker = Depends(get_tracker),
) -> StreamStatsResponse:
    return StreamStatsResponse(**tracker.as_context())
