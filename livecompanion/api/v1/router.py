# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Main API router for v1 endpoints."""

from fastapi import APIRouter

from livecompanion.api.v1 import automation, extensions, flows

api_router = APIRouter()

# Extension management routes
api_router.include_router(extensions.router)

# Flow routes
api_router.include_router(flows.router)

# Automation introspection routes
api_router.include_router(automation.router)
