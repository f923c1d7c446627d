# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Flow management API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from livecompanion.api.deps import get_engine
from livecompanion.automation.engine import AutomationEngine
from livecompanion.automation.models import ExecutionRecord, Flow
from livecompanion.errors import FlowNotFoundError, FlowValidationError
from livecompanion.schemas.common import MessageResponse
from livecompanion.schemas.flow import (
    ExecutionRecordResponse,
    FlowCreate,
    FlowExecutionResponse,
    FlowResponse,
    FlowTestRequest,
    FlowUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/flows", tags=["flows"])


def _to_response(flow: Flow) -> FlowResponse:
    return FlowResponse(**flow.to_dict())


def execution_response(record: ExecutionRecord) -> ExecutionRecordResponse:
    return ExecutionRecordResponse(**record.to_dict())


def _get_flow(engine: AutomationEngine, flow_id: int) -> Flow:
    try:
        return engine.get_flow(flow_id)
    except FlowNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Flow {flow_id} not found",
        ) from e


@router.get("", response_model=list[FlowResponse])
async def list_flows(
    engine: AutomationEngine = Depends(get_engine),
) -> list[FlowResponse]:
    """List all flows in registration order."""
    return [_to_response(flow) for flow in engine.list_flows()]


@router.post("", response_model=FlowResponse, status_code=status.HTTP_201_CREATED)
async def create_flow(
    data: FlowCreate,
    engine: AutomationEngine = Depends(get_engine),
) -> FlowResponse:
    try:
        flow = engine.create_flow(data.model_dump())
    except FlowValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return _to_response(flow)


@router.get("/{flow_id}", response_model=FlowResponse)
async def get_flow(
    flow_id: int,
    engine: AutomationEngine = Depends(get_engine),
) -> FlowResponse:
    return _to_response(_get_flow(engine, flow_id))


@router.put("/{flow_id}", response_model=FlowResponse)
async def update_flow(
    flow_id: int,
    data: FlowUpdate,
    engine: AutomationEngine = Depends(get_engine),
) -> FlowResponse:
    """Update a flow; only the fields sent are changed."""
    _get_flow(engine, flow_id)
    try:
        flow = engine.update_flow(flow_id, data.model_dump(exclude_unset=True))
    except FlowValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    return _to_response(flow)


@router.delete("/{flow_id}", response_model=MessageResponse)
async def delete_flow(
    flow_id: int,
    engine: AutomationEngine = Depends(get_engine),
) -> MessageResponse:
    _get_flow(engine, flow_id)
    engine.delete_flow(flow_id)
    return MessageResponse(message=f"Flow {flow_id} deleted")


@router.post("/{flow_id}/toggle", response_model=FlowResponse)
async def toggle_flow(
    flow_id: int,
    engine: AutomationEngine = Depends(get_engine),
) -> FlowResponse:
    """Flip the enabled flag. Execution history is kept."""
    _get_flow(engine, flow_id)
    return _to_response(engine.toggle_flow(flow_id))


@router.post("/{flow_id}/test", response_model=FlowExecutionResponse)
async def test_flow(
    flow_id: int,
    request: FlowTestRequest | None = None,
    engine: AutomationEngine = Depends(get_engine),
) -> FlowExecutionResponse:
    """Run the action list directly against sample data.

    Trigger matching and conditions are skipped.
    """
    _get_flow(engine, flow_id)
    record = await engine.test_flow(flow_id, request.data if request else None)
    return FlowExecutionResponse(
        success=record.success,
        executed=True,
        message=f"Flow {flow_id} executed: {record.result.value}",
        execution=execution_response(record),
    )
