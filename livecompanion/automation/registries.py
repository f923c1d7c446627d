# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Registries of trigger, condition-operator and action definitions.

Definitions are keyed by type name. Registering a name that already exists
replaces the visible definition and logs a notice; the replaced one is kept
and restored when the origin that shadowed it is unregistered.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from livecompanion.automation.operators import Operator
from livecompanion.events.bus import LiveEvent, LiveEventType

logger = logging.getLogger(__name__)

CORE_ORIGIN = "core"

TriggerMatcher = Callable[[dict[str, Any], LiveEvent], bool]
ConditionEvaluatorFn = Callable[[Any, Any], bool]
ActionExecutor = Callable[[dict[str, Any], Any], Any]


@dataclass
class TriggerDefinition:
    """Describes what can start a flow.

    A trigger listens to ``event_types`` and may narrow the match with
    ``matcher(trigger_config, event)``. Timer triggers have no event types
    and are started by the scheduler.
    """

    type: str
    name: str
    description: str = ""
    category: str = "custom"
    event_types: tuple[LiveEventType, ...] = ()
    matcher: TriggerMatcher | None = None
    fields: list[dict[str, Any]] = field(default_factory=list)
    timer: bool = False
    origin: str = CORE_ORIGIN

    def matches(self, config: dict[str, Any], event: LiveEvent) -> bool:
        if event.event_type not in self.event_types:
            return False
        if self.matcher is None:
            return True
        return bool(self.matcher(config, event))

    def describe(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "event_types": [t.value for t in self.event_types],
            "fields": self.fields,
            "timer": self.timer,
            "origin": self.origin,
        }


@dataclass
class ConditionOperatorDefinition:
    type: str
    evaluator: ConditionEvaluatorFn
    name: str = ""
    symbol: str = ""
    accepts_missing: bool = False
    origin: str = CORE_ORIGIN

    def describe(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name or self.type,
            "symbol": self.symbol,
            "accepts_missing": self.accepts_missing,
            "origin": self.origin,
        }


@dataclass
class ActionDefinition:
    """An executable step; ``executor(params, context)`` may be async."""

    type: str
    executor: ActionExecutor
    name: str = ""
    description: str = ""
    category: str = "custom"
    fields: list[dict[str, Any]] = field(default_factory=list)
    origin: str = CORE_ORIGIN

    def describe(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name or self.type,
            "description": self.description,
            "category": self.category,
            "fields": self.fields,
            "origin": self.origin,
        }


class _Definition(Protocol):
    type: str
    origin: str

    def describe(self) -> dict[str, Any]: ...


T = TypeVar("T", bound=_Definition)


class Registry(Generic[T]):
    """Name-keyed definitions with last-registered-wins semantics."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._entries: dict[str, T] = {}
        self._shadowed: dict[str, list[T]] = defaultdict(list)

    def register(self, definition: T) -> None:
        existing = self._entries.get(definition.type)
        if existing is not None:
            logger.warning(
                f"{self.kind.capitalize()} '{definition.type}' from "
                f"{existing.origin} overwritten by {definition.origin}"
            )
            self._shadowed[definition.type].append(existing)
        self._entries[definition.type] = definition
        logger.debug(f"Registered {self.kind} {definition.type} ({definition.origin})")

    def unregister_origin(self, origin: str) -> list[str]:
        """Remove everything an origin registered.

        Shadowed definitions from other origins become visible again.

        Returns:
            Type names that were affected
        """
        affected = []
        for type_name in list(self._entries.keys()):
            shadowed = [d for d in self._shadowed.get(type_name, []) if d.origin != origin]
            self._shadowed[type_name] = shadowed

            if self._entries[type_name].origin != origin:
                continue
            affected.append(type_name)
            if shadowed:
                self._entries[type_name] = shadowed.pop()
                logger.info(
                    f"Restored {self.kind} '{type_name}' from "
                    f"{self._entries[type_name].origin}"
                )
            else:
                del self._entries[type_name]

        for type_name in [k for k, v in self._shadowed.items() if not v]:
            del self._shadowed[type_name]
        return affected

    def get(self, type_name: str) -> T | None:
        return self._entries.get(type_name)

    def has(self, type_name: str) -> bool:
        return type_name in self._entries

    def all(self) -> list[T]:
        return list(self._entries.values())

    def describe_all(self) -> list[dict[str, Any]]:
        return [d.describe() for d in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)


class ConditionRegistry(Registry[ConditionOperatorDefinition]):
    def __init__(self) -> None:
        super().__init__("condition operator")

    def resolve(self, tag: str) -> ConditionOperatorDefinition | None:
        """Find an operator by name or symbol alias."""
        definition = self.get(tag)
        if definition is not None:
            return definition
        operator = Operator.parse(tag)
        return self.get(operator.value) if operator else None


class AutomationRegistries:
    """The three registries the engine reads from."""

    def __init__(self) -> None:
        self.triggers: Registry[TriggerDefinition] = Registry("trigger")
        self.conditions = ConditionRegistry()
        self.actions: Registry[ActionDefinition] = Registry("action")

    def unregister_origin(self, origin: str) -> dict[str, list[str]]:
        return {
            "triggers": self.triggers.unregister_origin(origin),
            "conditions": self.conditions.unregister_origin(origin),
            "actions": self.actions.unregister_origin(origin),
        }

    @classmethod
    def with_builtins(cls) -> "AutomationRegistries":
        from livecompanion.automation.actions import register_builtin_actions
        from livecompanion.automation.triggers import register_builtin_triggers

        registries = cls()
        register_builtin_triggers(registries.triggers)
        for operator in Operator:
            registries.conditions.register(
                ConditionOperatorDefinition(
                    type=operator.value,
                    evaluator=operator.evaluate,
                    name=operator.label,
                    symbol=operator.symbol,
                    accepts_missing=operator.accepts_missing,
                )
            )
        register_builtin_actions(registries.actions)
        return registries
