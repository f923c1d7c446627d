# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Scheduler for timer-triggered flows."""

import asyncio
import logging
from typing import TYPE_CHECKING

from livecompanion.automation.models import Flow
from livecompanion.automation.triggers import DEFAULT_TIMER_INTERVAL

if TYPE_CHECKING:
    from livecompanion.automation.engine import AutomationEngine

logger = logging.getLogger(__name__)


class TimerScheduler:
    """One asyncio task per enabled timer flow.

    ``sync(flow)`` is called on every flow change; it cancels the old task
    and starts a new one only if the flow still qualifies.
    """

    def __init__(self, engine: "AutomationEngine") -> None:
        self._engine = engine
        self._tasks: dict[int, asyncio.Task] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True
        for flow in self._engine.list_flows():
            self.sync(flow)
        logger.info(f"Timer scheduler started with {len(self._tasks)} timers")

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def sync(self, flow: Flow) -> None:
        self.cancel(flow.id)
        if not self._running or not flow.enabled:
            return
        if not self._engine.is_timer_flow(flow):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, timer for flow {flow.id} not started")
            return

        interval = self.interval_of(flow)
        self._tasks[flow.id] = loop.create_task(
            self._run(flow.id, interval), name=f"flow-timer-{flow.id}"
        )
        logger.debug(f"Scheduled flow {flow.id} every {interval}s")

    def cancel(self, flow_id: int) -> bool:
        task = self._tasks.pop(flow_id, None)
        if task is None:
            return False
        task.cancel()
        logger.debug(f"Cancelled timer for flow {flow_id}")
        return True

    def is_scheduled(self, flow_id: int) -> bool:
        task = self._tasks.get(flow_id)
        return task is not None and not task.done()

    def scheduled_flow_ids(self) -> list[int]:
        return sorted(fid for fid in self._tasks if self.is_scheduled(fid))

    @staticmethod
    def interval_of(flow: Flow) -> float:
        return float(flow.trigger_config.get("interval_seconds", DEFAULT_TIMER_INTERVAL))

    async def _run(self, flow_id: int, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            flow = self._engine.find_flow(flow_id)
            if flow is None or not flow.enabled:
                return
            try:
                await self._engine.run_timer_flow(flow)
            except Exception as e:
                logger.error(f"Timer run of flow {flow_id} failed: {e}")
