# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""In-memory data types of the automation engine."""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from livecompanion.errors import FlowValidationError


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Logic(str, Enum):
    AND = "AND"
    OR = "OR"
    NOT = "NOT"


@dataclass
class ConditionLeaf:
    """Compare one context field against a literal value."""

    field: str
    operator: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass
class ConditionGroup:
    """Combine child conditions with AND, OR or NOT."""

    logic: Logic
    conditions: list["ConditionNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "logic": self.logic.value,
            "conditions": [c.to_dict() for c in self.conditions],
        }


ConditionNode = Union[ConditionLeaf, ConditionGroup]


def parse_condition(raw: Any) -> ConditionNode:
    """Build a condition tree from its JSON form.

    A leaf is ``{"field", "operator", "value"}``; a group is
    ``{"logic": "AND"|"OR"|"NOT", "conditions": [...]}``. A bare list is
    shorthand for an AND group.

    Raises:
        FlowValidationError: If the structure is malformed
    """
    if isinstance(raw, list):
        return ConditionGroup(Logic.AND, [parse_condition(c) for c in raw])

    if not isinstance(raw, dict):
        raise FlowValidationError(f"Condition must be an object, got {type(raw).__name__}")

    if "logic" in raw:
        try:
            logic = Logic(str(raw["logic"]).upper())
        except ValueError as e:
            raise FlowValidationError(f"Unknown condition logic: {raw['logic']}") from e

        children = raw.get("conditions")
        if children is None and "condition" in raw:
            children = [raw["condition"]]
        if not isinstance(children, list):
            raise FlowValidationError("Condition group needs a 'conditions' list")
        if logic == Logic.NOT and len(children) != 1:
            raise FlowValidationError("NOT group must wrap exactly one condition")

        return ConditionGroup(logic, [parse_condition(c) for c in children])

    if not raw.get("field") or not raw.get("operator"):
        raise FlowValidationError("Condition needs 'field' and 'operator'")

    return ConditionLeaf(
        field=str(raw["field"]),
        operator=str(raw["operator"]),
        value=raw.get("value"),
    )


@dataclass
class ActionStep:
    type: str
    params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> "ActionStep":
        if not isinstance(raw, dict) or not raw.get("type"):
            raise FlowValidationError("Action needs a 'type'")
        params = raw.get("params")
        if params is None:
            params = {k: v for k, v in raw.items() if k != "type"}
        if not isinstance(params, dict):
            raise FlowValidationError("Action 'params' must be an object")
        return cls(type=str(raw["type"]), params=dict(params))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "params": dict(self.params)}


@dataclass
class Flow:
    """A user-defined automation rule."""

    id: int
    name: str
    trigger_type: str
    trigger_config: dict[str, Any] = field(default_factory=dict)
    conditions: ConditionNode | None = None
    actions: list[ActionStep] = field(default_factory=list)
    enabled: bool = True
    continue_on_error: bool = False
    cooldown_seconds: float = 0.0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "trigger_type": self.trigger_type,
            "trigger_config": dict(self.trigger_config),
            "conditions": self.conditions.to_dict() if self.conditions else None,
            "actions": [a.to_dict() for a in self.actions],
            "enabled": self.enabled,
            "continue_on_error": self.continue_on_error,
            "cooldown_seconds": self.cooldown_seconds,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class ActionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class ExecutionResult(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass
class ActionOutcome:
    index: int
    type: str
    status: ActionStatus
    error: str | None = None
    result: Any = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == ActionStatus.SUCCESS


@dataclass
class ExecutionRecord:
    """Audit entry for one executed flow."""

    flow_id: int
    flow_name: str
    trigger: str
    result: ExecutionResult
    actions: list[ActionOutcome] = field(default_factory=list)
    event: dict[str, Any] = field(default_factory=dict)
    manual: bool = False
    error: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=_now)

    @property
    def success(self) -> bool:
        return self.result in (ExecutionResult.SUCCESS, ExecutionResult.STOPPED)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["result"] = self.result.value
        data["success"] = self.success
        for outcome in data["actions"]:
            outcome["status"] = outcome["status"].value
        return data


@dataclass
class Variable:
    name: str
    value: Any
    updated_at: datetime = field(default_factory=_now)
