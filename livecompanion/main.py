# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from livecompanion import __version__
from livecompanion.api.v1.router import api_router
from livecompanion.automation.actions import ActionServices, WebhookClient
from livecompanion.automation.engine import AutomationEngine
from livecompanion.automation.store import FlowStore
from livecompanion.config import Settings, get_settings
from livecompanion.database import build_engine, build_session_factory
from livecompanion.events.bus import EventBus
from livecompanion.events.core import StreamStateTracker, register_core_handlers
from livecompanion.extensions.api import PUBLIC_URL_PREFIX, ExtensionHost
from livecompanion.extensions.channels import ChannelHub
from livecompanion.extensions.loader import ExtensionLoader, ExtensionStateFile
from livecompanion.extensions.router_proxy import ExtensionRouteTable
from livecompanion.extensions.runtime import ExtensionRuntime
from livecompanion.logging_config import setup_logging
from livecompanion.schemas.common import HealthResponse
from livecompanion.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    runtime: ExtensionRuntime = app.state.runtime
    engine: AutomationEngine = app.state.engine

    # Startup: timers first so extension triggers can fire during init
    engine.start()
    logger.info("Initializing extension runtime...")
    states = await runtime.load_all()
    active = sum(1 for instance in runtime.instances() if instance.is_active)
    logger.info(f"Loaded {active} of {len(states)} extensions")

    yield

    # Shutdown: Cleanup
    logger.info("Shutting down extension runtime...")
    await runtime.shutdown()
    await engine.shutdown()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application and wire all long-lived services.

    Args:
        settings: Explicit settings; the cached environment settings are
            used when omitted

    Returns:
        The configured FastAPI application
    """
    settings = settings or get_settings()
    log_handler = setup_logging(settings)

    settings.extensions_dir.mkdir(parents=True, exist_ok=True)
    settings.extension_data_dir.mkdir(parents=True, exist_ok=True)

    db_engine = build_engine(settings.database_url)
    session_factory = build_session_factory(db_engine)
    settings_store = SettingsStore(session_factory)

    bus = EventBus()
    hub = ChannelHub()
    tracker = StreamStateTracker()
    register_core_handlers(bus, tracker, hub)

    services = ActionServices(
        hub=hub,
        webhooks=WebhookClient(settings.webhook_allowed_domains, settings.webhook_timeout),
        files_dir=settings.flow_files_dir,
    )
    engine = AutomationEngine(
        FlowStore(session_factory),
        services=services,
        history_size=settings.history_size,
        context_providers={"stream": tracker.as_context},
    )
    engine.load()
    bus.attach_engine(engine)

    routes = ExtensionRouteTable()
    host = ExtensionHost(
        bus=bus,
        hub=hub,
        routes=routes,
        settings_store=settings_store,
        engine=engine,
        data_dir=settings.extension_data_dir,
    )
    runtime = ExtensionRuntime(
        ExtensionLoader(settings.extensions_dir),
        host,
        ExtensionStateFile(settings.resolved_state_file),
        log_handler=log_handler,
        reload_warning_threshold=settings.reload_warning_threshold,
        reload_min_interval=settings.reload_min_interval,
    )

    app = FastAPI(
        title="Live Companion",
        description="Live-event companion with extensions and automation flows",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db_engine = db_engine
    app.state.settings_store = settings_store
    app.state.bus = bus
    app.state.hub = hub
    app.state.tracker = tracker
    app.state.engine = engine
    app.state.routes = routes
    app.state.runtime = runtime
    app.state.log_handler = log_handler

    # CORS middleware for overlay and dashboard development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    def health_check(request: Request) -> HealthResponse:
        """Health check endpoint."""
        state = request.app.state
        return HealthResponse(
            status="healthy",
            version=__version__,
            extensions_active=sum(1 for i in state.runtime.instances() if i.is_active),
            flows=len(state.engine.list_flows()),
            channel_connections=state.hub.connection_count,
        )

    @app.websocket("/ws")
    async def channel_socket(websocket: WebSocket) -> None:
        await hub.serve(websocket)

    app.include_router(api_router, prefix="/api/v1")

    # Extension routes live on a router that is mutated at runtime
    app.mount(settings.extension_route_prefix, routes.get_router())

    # Mount extension assets (overlays, icons)
    app.mount(
        PUBLIC_URL_PREFIX,
        StaticFiles(directory=settings.extensions_dir),
        name="extensions",
    )

    return app
