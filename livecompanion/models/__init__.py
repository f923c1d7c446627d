# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Database models package."""

from livecompanion.models.base import Base, TimestampMixin
from livecompanion.models.flow import FlowModel
from livecompanion.models.setting import SettingModel

__all__ = [
    "Base",
    "TimestampMixin",
    "FlowModel",
    "SettingModel",
]
