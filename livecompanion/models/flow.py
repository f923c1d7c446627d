# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Database model for automation flows."""

from typing import Any

from sqlalchemy import JSON, Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from livecompanion.models.base import Base, TimestampMixin


class FlowModel(Base, TimestampMixin):
    """Persisted flow definition.

    The integer primary key doubles as registration order: flows matching
    the same event are started in ascending id order.
    """

    __tablename__ = "flows"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    trigger_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    trigger_config: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    conditions: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )
    actions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    continue_on_error: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    cooldown_seconds: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        nullable=False,
    )
