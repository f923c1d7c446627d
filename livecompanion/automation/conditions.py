# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Condition tree evaluation."""

import logging

from livecompanion.automation.context import EvaluationContext
from livecompanion.automation.models import (
    ConditionGroup,
    ConditionLeaf,
    ConditionNode,
    Logic,
)
from livecompanion.automation.registries import ConditionRegistry
from livecompanion.errors import ConditionEvaluationError

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """Evaluates condition trees against an EvaluationContext.

    Evaluation never raises: a missing field, an unknown operator or an
    operand that cannot be coerced makes the leaf a non-match and is logged.
    """

    def __init__(self, registry: ConditionRegistry) -> None:
        self._registry = registry

    def evaluate(self, node: ConditionNode | None, context: EvaluationContext) -> bool:
        if node is None:
            return True
        if isinstance(node, ConditionGroup):
            return self._evaluate_group(node, context)
        try:
            return self._evaluate_leaf(node, context)
        except ConditionEvaluationError as e:
            logger.info(f"Condition {node.field} {node.operator} did not match: {e}")
            return False
        except Exception as e:
            logger.error(f"Operator {node.operator} failed on {node.field}: {e}")
            return False

    def _evaluate_group(self, group: ConditionGroup, context: EvaluationContext) -> bool:
        if group.logic == Logic.NOT:
            return not self.evaluate(group.conditions[0], context)
        if group.logic == Logic.OR:
            return any(self.evaluate(c, context) for c in group.conditions)
        return all(self.evaluate(c, context) for c in group.conditions)

    def _evaluate_leaf(self, leaf: ConditionLeaf, context: EvaluationContext) -> bool:
        definition = self._registry.resolve(leaf.operator)
        if definition is None:
            raise ConditionEvaluationError(f"Unknown operator: {leaf.operator}")

        found, actual = context.resolve(leaf.field)
        if not found and not definition.accepts_missing:
            raise ConditionEvaluationError(f"Field not present: {leaf.field}")

        expected = leaf.value
        if isinstance(expected, str):
            expected = context.render(expected)
        return bool(definition.evaluator(actual, expected))
