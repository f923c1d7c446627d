# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Database model for namespaced key/value settings."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from livecompanion.models.base import Base, TimestampMixin


class SettingModel(Base, TimestampMixin):
    """A single setting.

    Keys are namespaced by the caller (``extension:<id>:<key>`` for
    extension config). Values are stored as JSON text.
    """

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
