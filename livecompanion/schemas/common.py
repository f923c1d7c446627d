# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Common schema types."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    extensions_active: int
    flows: int
    channel_connections: int


class MessageResponse(BaseModel):
    """Simple message response."""

    success: bool = True
    message: str
