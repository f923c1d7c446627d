# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for condition trees and their evaluation."""

import pytest

from livecompanion.automation.conditions import ConditionEvaluator
from livecompanion.automation.context import EvaluationContext
from livecompanion.automation.models import (
    ConditionGroup,
    ConditionLeaf,
    Logic,
    parse_condition,
)
from livecompanion.automation.registries import (
    AutomationRegistries,
    ConditionOperatorDefinition,
)
from livecompanion.errors import FlowValidationError


@pytest.fixture
def evaluator() -> ConditionEvaluator:
    return ConditionEvaluator(AutomationRegistries.with_builtins().conditions)


def ctx(**event) -> EvaluationContext:
    return EvaluationContext(event)


class TestParseCondition:
    """Tests for building condition trees from JSON."""

    def test_leaf(self):
        node = parse_condition({"field": "coins", "operator": ">=", "value": 100})
        assert node == ConditionLeaf("coins", ">=", 100)

    def test_list_is_and_group(self):
        node = parse_condition([
            {"field": "a", "operator": "exists"},
            {"field": "b", "operator": "exists"},
        ])
        assert isinstance(node, ConditionGroup)
        assert node.logic == Logic.AND
        assert len(node.conditions) == 2

    def test_nested_groups(self):
        node = parse_condition({
            "logic": "or",
            "conditions": [
                {"field": "coins", "operator": ">", "value": 10},
                {"logic": "NOT", "condition": {"field": "muted", "operator": "is_true"}},
            ],
        })
        assert node.logic == Logic.OR
        assert node.conditions[1].logic == Logic.NOT

    def test_to_dict_roundtrip_shape(self):
        raw = {"logic": "AND", "conditions": [{"field": "x", "operator": "equals", "value": 1}]}
        assert parse_condition(raw).to_dict() == raw

    def test_leaf_requires_field_and_operator(self):
        with pytest.raises(FlowValidationError):
            parse_condition({"field": "coins"})

    def test_unknown_logic(self):
        with pytest.raises(FlowValidationError):
            parse_condition({"logic": "XOR", "conditions": []})

    def test_not_needs_single_child(self):
        with pytest.raises(FlowValidationError):
            parse_condition({"logic": "NOT", "conditions": []})


class TestConditionEvaluator:
    """Tests for ConditionEvaluator."""

    def test_none_matches(self, evaluator):
        assert evaluator.evaluate(None, ctx()) is True

    def test_coins_threshold(self, evaluator):
        node = parse_condition({"field": "coins", "operator": ">=", "value": 100})
        assert evaluator.evaluate(node, ctx(coins=100)) is True
        assert evaluator.evaluate(node, ctx(coins=99)) is False

    def test_missing_field_is_non_match(self, evaluator):
        node = parse_condition({"field": "coins", "operator": ">=", "value": 1})
        assert evaluator.evaluate(node, ctx(username="bob")) is False

    def test_missing_field_with_not_exists(self, evaluator):
        node = parse_condition({"field": "giftName", "operator": "not_exists"})
        assert evaluator.evaluate(node, ctx(username="bob")) is True

    def test_unknown_operator_is_non_match(self, evaluator):
        node = ConditionLeaf("coins", "roughly", 5)
        assert evaluator.evaluate(node, ctx(coins=5)) is False

    def test_uncoercible_operand_is_non_match(self, evaluator):
        node = parse_condition({"field": "coins", "operator": ">", "value": 5})
        assert evaluator.evaluate(node, ctx(coins="many")) is False

    def test_and_short_circuits(self):
        calls = []
        registry = AutomationRegistries.with_builtins().conditions
        registry.register(
            ConditionOperatorDefinition("spy", lambda a, b: calls.append(a) or True)
        )
        spying = ConditionEvaluator(registry)
        node = parse_condition([
            {"field": "coins", "operator": ">", "value": 1000},
            {"field": "coins", "operator": "spy"},
        ])
        assert spying.evaluate(node, ctx(coins=5)) is False
        assert calls == []

    def test_or_group(self, evaluator):
        node = parse_condition({
            "logic": "OR",
            "conditions": [
                {"field": "giftName", "operator": "equals", "value": "Lion"},
                {"field": "coins", "operator": ">=", "value": 500},
            ],
        })
        assert evaluator.evaluate(node, ctx(giftName="Lion", coins=1)) is True
        assert evaluator.evaluate(node, ctx(giftName="Rose", coins=600)) is True
        assert evaluator.evaluate(node, ctx(giftName="Rose", coins=1)) is False

    def test_not_group(self, evaluator):
        node = parse_condition({
            "logic": "NOT",
            "conditions": [{"field": "username", "operator": "equals", "value": "bot"}],
        })
        assert evaluator.evaluate(node, ctx(username="bob")) is True
        assert evaluator.evaluate(node, ctx(username="bot")) is False

    def test_expected_value_is_interpolated(self, evaluator):
        node = parse_condition({"field": "coins", "operator": ">", "value": "{threshold}"})
        context = EvaluationContext({"coins": 50}, {"threshold": 10})
        assert evaluator.evaluate(node, context) is True

    def test_variables_and_extras_are_visible(self, evaluator):
        node = parse_condition([
            {"field": "goal", "operator": "equals", "value": "on"},
            {"field": "stream.viewers", "operator": ">", "value": 10},
        ])
        context = EvaluationContext({}, {"goal": "on"}, {"stream": {"viewers": 42}})
        assert evaluator.evaluate(node, context) is True
