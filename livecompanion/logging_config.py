# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Logging setup and the in-memory log buffer behind the logs endpoint."""

import logging
import logging.handlers
from collections import deque
from datetime import datetime, timezone
from typing import Any

from livecompanion.config import Settings

ROOT_LOGGER = "livecompanion"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class MemoryLogHandler(logging.Handler):
    """Keeps the most recent log records in a bounded ring buffer.

    Records logged with ``extra={"extension_id": ...}`` can be filtered per
    extension when read back.
    """

    def __init__(self, capacity: int = 500) -> None:
        super().__init__()
        self._records: deque[dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._records.append({
                "timestamp": datetime.fromtimestamp(
                    record.created, tz=timezone.utc
                ).isoformat(),
                "level": record.levelname.lower(),
                "logger": record.name,
                "extension_id": getattr(record, "extension_id", None),
                "message": record.getMessage(),
            })
        except Exception:
            self.handleError(record)

    def get_records(
        self,
        extension_id: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Return the newest records first, optionally for one extension."""
        records = [
            r
            for r in reversed(self._records)
            if extension_id is None or r["extension_id"] == extension_id
        ]
        return records[:limit]

    def clear(self) -> None:
        self._records.clear()


def setup_logging(settings: Settings) -> MemoryLogHandler:
    """Configure the application logger and return its memory buffer.

    Console output is always on; a rotating file handler is added when
    ``settings.log_file`` is set. Calling this twice replaces the handlers.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            settings.log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    memory = MemoryLogHandler(settings.log_buffer_size)
    logger.addHandler(memory)
    return memory
