# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Flow persistence."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from livecompanion.automation.models import ActionStep, Flow, parse_condition
from livecompanion.errors import FlowNotFoundError
from livecompanion.models.flow import FlowModel

logger = logging.getLogger(__name__)

FLOW_COLUMNS = (
    "name",
    "trigger_type",
    "trigger_config",
    "conditions",
    "actions",
    "enabled",
    "continue_on_error",
    "cooldown_seconds",
)


def flow_from_model(model: FlowModel) -> Flow:
    return Flow(
        id=model.id,
        name=model.name,
        trigger_type=model.trigger_type,
        trigger_config=dict(model.trigger_config or {}),
        conditions=parse_condition(model.conditions) if model.conditions else None,
        actions=[ActionStep.from_dict(a) for a in model.actions or []],
        enabled=model.enabled,
        continue_on_error=model.continue_on_error,
        cooldown_seconds=model.cooldown_seconds,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class FlowStore:
    """Reads and writes flows; rows are returned as Flow objects."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def all(self) -> list[Flow]:
        with self._session_factory() as db:
            rows = db.scalars(select(FlowModel).order_by(FlowModel.id)).all()
            return [flow_from_model(row) for row in rows]

    def create(self, fields: dict[str, Any]) -> Flow:
        with self._session_factory() as db:
            model = FlowModel(**{k: v for k, v in fields.items() if k in FLOW_COLUMNS})
            db.add(model)
            db.commit()
            db.refresh(model)
            logger.info(f"Created flow {model.id}: {model.name}")
            return flow_from_model(model)

    def update(self, flow_id: int, fields: dict[str, Any]) -> Flow:
        with self._session_factory() as db:
            model = db.get(FlowModel, flow_id)
            if model is None:
                raise FlowNotFoundError(f"Flow {flow_id} not found")
            for key, value in fields.items():
                if key in FLOW_COLUMNS:
                    setattr(model, key, value)
            db.commit()
            db.refresh(model)
            return flow_from_model(model)

    def delete(self, flow_id: int) -> bool:
        with self._session_factory() as db:
            model = db.get(FlowModel, flow_id)
            if model is None:
                return False
            db.delete(model)
            db.commit()
            logger.info(f"Deleted flow {flow_id}")
            return True
