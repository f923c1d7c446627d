# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Bounded execution history."""

from collections import deque

from livecompanion.automation.models import ExecutionRecord


class ExecutionHistory:
    """Ring buffer of the most recent execution records."""

    def __init__(self, size: int = 100) -> None:
        if size < 1:
            raise ValueError("History size must be at least 1")
        self._records: deque[ExecutionRecord] = deque(maxlen=size)
        self.total_recorded = 0

    @property
    def size(self) -> int:
        return self._records.maxlen or 0

    def append(self, record: ExecutionRecord) -> None:
        self._records.append(record)
        self.total_recorded += 1

    def recent(self, limit: int | None = None, flow_id: int | None = None) -> list[ExecutionRecord]:
        """Most recent records first."""
        records = [
            r for r in reversed(self._records)
            if flow_id is None or r.flow_id == flow_id
        ]
        return records if limit is None else records[:limit]

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
