# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Trigger/condition/action automation over the live event stream."""

from livecompanion.automation.actions import ActionContext, ActionServices, WebhookClient
from livecompanion.automation.engine import AutomationEngine
from livecompanion.automation.models import (
    ExecutionRecord,
    ExecutionResult,
    Flow,
    parse_condition,
)
from livecompanion.automation.operators import Operator
from livecompanion.automation.registries import (
    ActionDefinition,
    AutomationRegistries,
    ConditionOperatorDefinition,
    TriggerDefinition,
)
from livecompanion.automation.store import FlowStore

__all__ = [
    "ActionContext",
    "ActionServices",
    "WebhookClient",
    "AutomationEngine",
    "ExecutionRecord",
    "ExecutionResult",
    "Flow",
    "parse_condition",
    "Operator",
    "ActionDefinition",
    "AutomationRegistries",
    "ConditionOperatorDefinition",
    "TriggerDefinition",
    "FlowStore",
]
