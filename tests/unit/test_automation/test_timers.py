# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for timer-triggered flows."""

import asyncio

import pytest


def timer_flow(interval: float = 0.02, **overrides) -> dict:
    flow = {
        "name": "Tick",
        "trigger_type": "timer:interval",
        "trigger_config": {"interval_seconds": interval},
        "actions": [{"type": "variable:increment", "params": {"name": "ticks"}}],
    }
    flow.update(overrides)
    return flow


class TestTimerScheduler:
    """Tests for TimerScheduler through the engine."""

    def test_not_scheduled_before_start(self, engine):
        flow = engine.create_flow(timer_flow())
        assert engine.timers.is_scheduled(flow.id) is False

    @pytest.mark.asyncio
    async def test_timer_flow_runs_periodically(self, engine):
        engine.create_flow(timer_flow())
        engine.start()
        try:
            await asyncio.sleep(0.15)
        finally:
            await engine.shutdown()

        assert engine.variables.get("ticks", 0) >= 2
        assert engine.history.recent()[0].trigger == "timer:interval"

    @pytest.mark.asyncio
    async def test_event_flows_not_scheduled(self, engine):
        flow = engine.create_flow({"name": "Gift", "trigger_type": "gift"})
        engine.start()
        assert engine.timers.is_scheduled(flow.id) is False
        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_disable_cancels_timer(self, engine):
        flow = engine.create_flow(timer_flow(interval=30))
        engine.start()
        assert engine.timers.scheduled_flow_ids() == [flow.id]

        engine.set_enabled(flow.id, False)

        assert engine.timers.is_scheduled(flow.id) is False
        assert engine.timers.scheduled_flow_ids() == []
        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_delete_cancels_timer(self, engine):
        flow = engine.create_flow(timer_flow(interval=30))
        engine.start()

        engine.delete_flow(flow.id)

        assert engine.timers.scheduled_flow_ids() == []
        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_reenable_reschedules(self, engine):
        flow = engine.create_flow(timer_flow(interval=30, enabled=False))
        engine.start()
        assert engine.timers.is_scheduled(flow.id) is False

        engine.set_enabled(flow.id, True)

        assert engine.timers.is_scheduled(flow.id) is True
        await engine.shutdown()

    @pytest.mark.asyncio
    async def test_conditions_apply_to_timer_runs(self, engine):
        engine.create_flow(timer_flow(
            conditions={"field": "armed", "operator": "is_true"},
        ))
        engine.start()
        try:
            await asyncio.sleep(0.08)
            assert engine.variables.get("ticks") is None
            engine.variables.set("armed", True)
            await asyncio.sleep(0.08)
        finally:
            await engine.shutdown()

        assert engine.variables.get("ticks", 0) >= 1

    @pytest.mark.asyncio
    async def test_shutdown_cancels_everything(self, engine):
        engine.create_flow(timer_flow(interval=30))
        engine.create_flow(timer_flow(interval=30))
        engine.start()
        assert len(engine.timers.scheduled_flow_ids()) == 2

        await engine.shutdown()

        assert engine.timers.scheduled_flow_ids() == []
