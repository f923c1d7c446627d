# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for the variable store and execution history."""

import pytest

from livecompanion.automation.history import ExecutionHistory
from livecompanion.automation.models import ExecutionRecord, ExecutionResult
from livecompanion.automation.variables import VariableStore
from livecompanion.errors import ActionExecutionError


def record(flow_id: int = 1) -> ExecutionRecord:
    return ExecutionRecord(
        flow_id=flow_id,
        flow_name=f"flow {flow_id}",
        trigger="gift",
        result=ExecutionResult.SUCCESS,
    )


class TestVariableStore:
    def test_set_and_get(self):
        store = VariableStore()
        variable = store.set("goal", 100)
        assert store.get("goal") == 100
        assert store.last_updated("goal") == variable.updated_at

    def test_get_default(self):
        assert VariableStore().get("missing", "fallback") == "fallback"

    def test_increment_starts_at_zero(self):
        store = VariableStore()
        store.increment("count")
        store.increment("count", 2)
        assert store.get("count") == 3

    def test_increment_numeric_string(self):
        store = VariableStore()
        store.set("count", "4")
        assert store.increment("count").value == 5

    def test_increment_non_numeric_raises(self):
        store = VariableStore()
        store.set("name", "bob")
        with pytest.raises(ActionExecutionError):
            store.increment("name")

    def test_delete(self):
        store = VariableStore()
        store.set("a", 1)
        assert store.delete("a") is True
        assert store.delete("a") is False
        assert "a" not in store

    def test_all_sorted(self):
        store = VariableStore()
        store.set("b", 2)
        store.set("a", 1)
        assert [v.name for v in store.all()] == ["a", "b"]
        assert store.as_dict() == {"b": 2, "a": 1}


class TestExecutionHistory:
    """Tests for the bounded history."""

    def test_evicts_oldest(self):
        history = ExecutionHistory(size=2)
        first, second, third = record(), record(), record()
        for r in (first, second, third):
            history.append(r)

        assert len(history) == 2
        assert history.recent() == [third, second]
        assert history.total_recorded == 3

    def test_recent_filters_and_limits(self):
        history = ExecutionHistory()
        for flow_id in (1, 2, 1, 1):
            history.append(record(flow_id))

        assert len(history.recent(flow_id=1)) == 3
        assert len(history.recent(limit=2)) == 2

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            ExecutionHistory(size=0)

    def test_clear(self):
        history = ExecutionHistory()
        history.append(record())
        history.clear()
        assert history.recent() == []
