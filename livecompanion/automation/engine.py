# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""The automation engine.

Holds the flow set, matches live events against flow triggers, evaluates
condition trees and runs action pipelines. Flows matched by one event are
started in ascending id order and then run concurrently; actions inside a
flow run strictly one after another.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from livecompanion.automation.actions import ActionContext, ActionServices, FlowStopped
from livecompanion.automation.conditions import ConditionEvaluator
from livecompanion.automation.context import EvaluationContext
from livecompanion.automation.history import ExecutionHistory
from livecompanion.automation.models import (
    ActionOutcome,
    ActionStatus,
    ActionStep,
    ExecutionRecord,
    ExecutionResult,
    Flow,
    parse_condition,
)
from livecompanion.automation.registries import AutomationRegistries
from livecompanion.automation.store import FlowStore
from livecompanion.automation.timers import TimerScheduler
from livecompanion.automation.variables import VariableStore
from livecompanion.errors import (
    ActionExecutionError,
    FlowNotFoundError,
    FlowValidationError,
)
from livecompanion.events.bus import LiveEvent

logger = logging.getLogger(__name__)

ContextProvider = Callable[[], Any]


class AutomationEngine:
    """Evaluates flows against live events and manual requests.

    Args:
        store: Flow persistence
        registries: Trigger, condition and action registries
        services: Host services used by built-in actions
        history_size: Number of execution records kept
        context_providers: Extra named objects for conditions and templates,
            e.g. ``{"stream": tracker.as_context}``
    """

    def __init__(
        self,
        store: FlowStore,
        registries: AutomationRegistries | None = None,
        services: ActionServices | None = None,
        history_size: int = 100,
        context_providers: dict[str, ContextProvider] | None = None,
    ) -> None:
        self._store = store
        self.registries = registries or AutomationRegistries.with_builtins()
        self.services = services or ActionServices()
        self.variables = VariableStore()
        self.history = ExecutionHistory(history_size)
        self.timers = TimerScheduler(self)
        self.conditions = ConditionEvaluator(self.registries.conditions)
        self._context_providers = dict(context_providers or {})
        self._flows: dict[int, Flow] = {}
        self._last_run: dict[int, float] = {}

    # Lifecycle

    def load(self) -> int:
        """Load all persisted flows into memory."""
        self._flows = {flow.id: flow for flow in self._store.all()}
        logger.info(f"Loaded {len(self._flows)} flows")
        return len(self._flows)

    def start(self) -> None:
        self.timers.start()

    async def shutdown(self) -> None:
        await self.timers.stop()
        await self.services.webhooks.close()

    # Flow management

    def list_flows(self) -> list[Flow]:
        return [self._flows[flow_id] for flow_id in sorted(self._flows)]

    def find_flow(self, flow_id: int) -> Flow | None:
        return self._flows.get(flow_id)

    def get_flow(self, flow_id: int) -> Flow:
        flow = self._flows.get(flow_id)
        if flow is None:
            raise FlowNotFoundError(f"Flow {flow_id} not found")
        return flow

    def create_flow(self, fields: dict[str, Any]) -> Flow:
        """Validate, persist and activate a new flow.

        Raises:
            FlowValidationError: If the definition is invalid
        """
        if not fields.get("name"):
            raise FlowValidationError("Flow needs a name")
        if not fields.get("trigger_type"):
            raise FlowValidationError("Flow needs a trigger_type")

        flow = self._store.create(self._validated(fields))
        self._flows[flow.id] = flow
        self.timers.sync(flow)
        return flow

    def update_flow(self, flow_id: int, fields: dict[str, Any]) -> Flow:
        """Apply a partial update to a flow.

        Only ``conditions`` may be cleared with ``None``.

        Raises:
            FlowNotFoundError: If the flow does not exist
            FlowValidationError: If a required field is set to ``None`` or
                the merged definition is invalid
        """
        current = self.get_flow(flow_id)
        cleared = sorted(k for k, v in fields.items() if v is None and k != "conditions")
        if cleared:
            raise FlowValidationError(f"Fields cannot be null: {', '.join(cleared)}")
        merged = {"trigger_type": current.trigger_type, "trigger_config": current.trigger_config}
        merged.update(fields)
        validated = self._validated(merged)
        changes = {k: v for k, v in validated.items() if k in fields or k == "trigger_config"}

        flow = self._store.update(flow_id, changes)
        self._flows[flow.id] = flow
        self._last_run.pop(flow_id, None)
        self.timers.sync(flow)
        return flow

    def delete_flow(self, flow_id: int) -> None:
        self.get_flow(flow_id)
        self.timers.cancel(flow_id)
        self._store.delete(flow_id)
        self._flows.pop(flow_id, None)
        self._last_run.pop(flow_id, None)

    def set_enabled(self, flow_id: int, enabled: bool) -> Flow:
        return self.update_flow(flow_id, {"enabled": enabled})

    def toggle_flow(self, flow_id: int) -> Flow:
        return self.set_enabled(flow_id, not self.get_flow(flow_id).enabled)

    def is_timer_flow(self, flow: Flow) -> bool:
        definition = self.registries.triggers.get(flow.trigger_type)
        return definition is not None and definition.timer

    def _validated(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Normalize a flow definition into its stored JSON form."""
        result = dict(fields)

        trigger_type = result.get("trigger_type")
        definition = self.registries.triggers.get(trigger_type) if trigger_type else None
        if trigger_type and definition is None:
            raise FlowValidationError(f"Unknown trigger type: {trigger_type}")

        trigger_config = result.get("trigger_config") or {}
        if not isinstance(trigger_config, dict):
            raise FlowValidationError("trigger_config must be an object")
        if definition is not None and definition.timer:
            try:
                interval = float(trigger_config.get("interval_seconds", 60))
            except (TypeError, ValueError) as e:
                raise FlowValidationError("interval_seconds must be a number") from e
            if interval <= 0:
                raise FlowValidationError("interval_seconds must be positive")
        result["trigger_config"] = trigger_config

        if "conditions" in result:
            raw = result["conditions"]
            result["conditions"] = parse_condition(raw).to_dict() if raw else None

        if "actions" in result:
            actions = result["actions"] or []
            if not isinstance(actions, list):
                raise FlowValidationError("actions must be a list")
            result["actions"] = [ActionStep.from_dict(a).to_dict() for a in actions]

        if "cooldown_seconds" in result:
            cooldown = float(result["cooldown_seconds"] or 0)
            if cooldown < 0:
                raise FlowValidationError("cooldown_seconds cannot be negative")
            result["cooldown_seconds"] = cooldown

        return result

    # Evaluation

    def build_context(self, data: dict[str, Any]) -> EvaluationContext:
        extras = {}
        for name, provider in self._context_providers.items():
            try:
                extras[name] = provider()
            except Exception as e:
                logger.error(f"Context provider {name} failed: {e}")
        return EvaluationContext(data, self.variables.as_dict(), extras)

    def match_event(self, event: LiveEvent) -> list[Flow]:
        """Enabled flows whose trigger accepts the event, in id order."""
        matched = []
        for flow in self.list_flows():
            if not flow.enabled:
                continue
            definition = self.registries.triggers.get(flow.trigger_type)
            if definition is None:
                logger.debug(f"Flow {flow.id} has unknown trigger {flow.trigger_type}")
                continue
            try:
                if definition.matches(flow.trigger_config, event):
                    matched.append(flow)
            except Exception as e:
                logger.error(f"Trigger {flow.trigger_type} matcher failed for flow {flow.id}: {e}")
        return matched

    async def process_event(self, event: LiveEvent) -> list[ExecutionRecord]:
        """Run every flow triggered by a live event."""
        flows = self.match_event(event)
        return await self._run_matched(flows, event.data, event.event_type.value)

    async def fire_trigger(
        self,
        trigger_type: str,
        data: dict[str, Any] | None = None,
    ) -> list[ExecutionRecord]:
        """Run flows bound to a trigger type that is fired directly.

        Used by extension-defined triggers that do not map to a live event.
        """
        flows = [
            flow for flow in self.list_flows()
            if flow.enabled and flow.trigger_type == trigger_type
        ]
        return await self._run_matched(flows, data or {}, trigger_type)

    async def run_timer_flow(self, flow: Flow) -> ExecutionRecord | None:
        data = {"interval_seconds": self.timers.interval_of(flow)}
        return await self._evaluate_and_run(flow, data, flow.trigger_type)

    async def trigger_flow(
        self,
        flow_id: int,
        data: dict[str, Any] | None = None,
        depth: int = 0,
    ) -> ExecutionRecord | None:
        """Manually run a flow; its conditions are still evaluated.

        Returns:
            The execution record, or None if the conditions did not match

        Raises:
            FlowNotFoundError: If the flow does not exist
        """
        flow = self.get_flow(flow_id)
        data = data or {}
        if not self.conditions.evaluate(flow.conditions, self.build_context(data)):
            logger.info(f"Manual trigger of flow {flow_id}: conditions not met")
            return None
        return await self.execute_flow(flow, data, "manual", manual=True, depth=depth)

    async def test_flow(
        self,
        flow_id: int,
        data: dict[str, Any] | None = None,
    ) -> ExecutionRecord:
        """Run a flow's actions directly against sample data.

        Trigger match and conditions are both bypassed.
        """
        flow = self.get_flow(flow_id)
        if data is None:
            data = {
                "username": "TestUser",
                "nickname": "Test User",
                "message": "Test message",
                "giftName": "Rose",
                "coins": 1,
            }
        return await self.execute_flow(flow, data, "test", manual=True)

    async def _run_matched(
        self,
        flows: list[Flow],
        data: dict[str, Any],
        trigger: str,
    ) -> list[ExecutionRecord]:
        if not flows:
            return []
        results = await asyncio.gather(
            *(self._evaluate_and_run(flow, data, trigger) for flow in flows)
        )
        return [record for record in results if record is not None]

    async def _evaluate_and_run(
        self,
        flow: Flow,
        data: dict[str, Any],
        trigger: str,
    ) -> ExecutionRecord | None:
        if not self.conditions.evaluate(flow.conditions, self.build_context(data)):
            return None

        if flow.cooldown_seconds > 0:
            last = self._last_run.get(flow.id)
            if last is not None and time.monotonic() - last < flow.cooldown_seconds:
                logger.debug(f"Flow {flow.id} in cooldown, skipped")
                return None
        return await self.execute_flow(flow, data, trigger)

    async def execute_flow(
        self,
        flow: Flow,
        data: dict[str, Any],
        trigger: str,
        manual: bool = False,
        depth: int = 0,
    ) -> ExecutionRecord:
        """Run a flow's action list in order and record the outcome."""
        self._last_run[flow.id] = time.monotonic()
        logger.info(f"Executing flow {flow.id} ({flow.name}) on {trigger}")

        action_context = ActionContext(
            engine=self,
            event=dict(data),
            trigger=trigger,
            flow=flow,
            depth=depth,
        )
        outcomes: list[ActionOutcome] = []
        failed = False
        stopped = False
        aborted_at: int | None = None

        for index, step in enumerate(flow.actions):
            started = time.perf_counter()
            try:
                result = await self._run_action(step, action_context)
            except FlowStopped as e:
                outcomes.append(ActionOutcome(index, step.type, ActionStatus.SUCCESS, result=str(e)))
                stopped = True
                aborted_at = index + 1
                break
            except Exception as e:
                failed = True
                outcomes.append(
                    ActionOutcome(
                        index,
                        step.type,
                        ActionStatus.ERROR,
                        error=str(e),
                        duration_ms=(time.perf_counter() - started) * 1000,
                    )
                )
                logger.error(f"Action {step.type} failed in flow {flow.id}: {e}")
                if not flow.continue_on_error:
                    aborted_at = index + 1
                    break
                continue

            outcomes.append(
                ActionOutcome(
                    index,
                    step.type,
                    ActionStatus.SUCCESS,
                    result=result,
                    duration_ms=(time.perf_counter() - started) * 1000,
                )
            )

        if aborted_at is not None:
            for index in range(aborted_at, len(flow.actions)):
                outcomes.append(ActionOutcome(index, flow.actions[index].type, ActionStatus.SKIPPED))

        if stopped:
            result_state = ExecutionResult.STOPPED
        elif not failed:
            result_state = ExecutionResult.SUCCESS
        elif flow.continue_on_error and any(o.success for o in outcomes):
            result_state = ExecutionResult.PARTIAL
        else:
            result_state = ExecutionResult.FAILED

        errors = [o.error for o in outcomes if o.error]
        record = ExecutionRecord(
            flow_id=flow.id,
            flow_name=flow.name,
            trigger=trigger,
            result=result_state,
            actions=outcomes,
            event=dict(data),
            manual=manual,
            error=errors[0] if errors else None,
        )
        self.history.append(record)
        return record

    async def _run_action(self, step: ActionStep, context: ActionContext) -> Any:
        definition = self.registries.actions.get(step.type)
        if definition is None:
            raise ActionExecutionError(f"Unknown action type: {step.type}")

        # Rebuilt per step so earlier variable writes are visible.
        params = self.build_context(context.event).render_value(step.params)
        result = definition.executor(params, context)
        if inspect.isawaitable(result):
            result = await result
        return result

    # Introspection

    def describe_registries(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "triggers": self.registries.triggers.describe_all(),
            "conditions": self.registries.conditions.describe_all(),
            "actions": self.registries.actions.describe_all(),
        }
