# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Capability API handed to each extension.

This is the only object through which an extension affects the host. Every
operation is checked against the extension's CapabilityGrant, and everything
registered through it is tracked by extension id so unload can revoke it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from livecompanion.automation.registries import (
    ActionDefinition,
    ConditionOperatorDefinition,
    TriggerDefinition,
)
from livecompanion.events.bus import EventBus, LiveEventType
from livecompanion.extensions.base import ExtensionManifest, Permission
from livecompanion.extensions.channels import ChannelHandler, ChannelHub
from livecompanion.extensions.permissions import CapabilityGrant
from livecompanion.extensions.router_proxy import ExtensionRouteTable, RouteHandler
from livecompanion.services.settings_store import SettingsStore

if TYPE_CHECKING:
    from livecompanion.automation.engine import AutomationEngine
    from livecompanion.automation.models import ExecutionRecord

logger = logging.getLogger(__name__)

PUBLIC_URL_PREFIX = "/extensions"


@dataclass
class ExtensionHost:
    """Host services shared by all capability APIs."""

    bus: EventBus
    hub: ChannelHub
    routes: ExtensionRouteTable
    settings_store: SettingsStore
    engine: "AutomationEngine"
    data_dir: Path


def config_key(extension_id: str, key: str) -> str:
    return f"extension:{extension_id}:{key}"


class ExtensionAPI:
    """Per-extension capability facade."""

    def __init__(
        self,
        manifest: ExtensionManifest,
        path: Path,
        grant: CapabilityGrant,
        host: ExtensionHost,
    ) -> None:
        self._manifest = manifest
        self._path = path
        self._grant = grant
        self._host = host
        self._logger = logging.getLogger(f"livecompanion.extension.{manifest.id}")

    @property
    def extension_id(self) -> str:
        return self._manifest.id

    @property
    def grant(self) -> CapabilityGrant:
        return self._grant

    # Routes

    def register_route(self, method: str, path: str, handler: RouteHandler) -> None:
        """Expose an HTTP handler at ``{prefix}/{extension_id}{path}``.

        Paths are namespaced per extension, so extensions never replace each
        other's routes. Exceptions raised by the handler become a 500 response with
        ``{"success": false, "error": "Extension route error", "message": ...}``.
        """
        self._grant.require(Permission.ROUTES)
        self._host.routes.add_route(self.extension_id, method, path, handler)

    # Events

    def register_event(
        self,
        event_type: LiveEventType | str,
        handler: Callable,
    ) -> None:
        """Subscribe to a live event type.

        Raises:
            ValueError: If the event type is unknown
        """
        self._grant.require(Permission.EVENTS)
        self._host.bus.subscribe(LiveEventType(event_type), handler, self.extension_id)

    # Channels

    def register_channel(self, event: str, handler: ChannelHandler) -> None:
        """Handle inbound channel messages named ``event``.

        The handler is called as ``handler(connection, data)``.
        """
        self._grant.require(Permission.CHANNELS)
        self._host.hub.register_handler(self.extension_id, event, handler)

    async def broadcast(self, event: str, data: Any = None) -> int:
        """Send ``<extension id>:<event>`` to every connected client."""
        self._grant.require(Permission.BROADCAST)
        return await self._host.hub.broadcast(f"{self.extension_id}:{event}", data)

    # Configuration

    def get_config(self, key: str, default: Any = None) -> Any:
        """Read a config value, falling back to the manifest default.

        Raises:
            SettingsDecodeError: If the stored value is malformed
        """
        self._grant.require(Permission.CONFIG)
        fallback = self._manifest.config.get(key, default)
        return self._host.settings_store.get(config_key(self.extension_id, key), fallback)

    def set_config(self, key: str, value: Any) -> None:
        self._grant.require(Permission.CONFIG)
        self._host.settings_store.set(config_key(self.extension_id, key), value)

    # Logging and paths

    def log(self, message: str, level: str = "info") -> None:
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
        self._logger.log(
            log_level,
            f"[Extension:{self.extension_id}] {message}",
            extra={"extension_id": self.extension_id},
        )

    def get_extension_dir(self) -> Path:
        return self._path

    def get_public_url(self, file: str) -> str:
        return f"{PUBLIC_URL_PREFIX}/{self.extension_id}/{file.lstrip('/')}"

    def get_data_dir(self) -> Path:
        """Writable directory for the extension's own files."""
        self._grant.require(Permission.FILESYSTEM)
        data_dir = self._host.data_dir / self.extension_id
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    # Automation

    def register_trigger(
        self,
        trigger_type: str,
        name: str,
        event_types: list[LiveEventType | str] | None = None,
        matcher: Callable | None = None,
        description: str = "",
        category: str = "custom",
        fields: list[dict[str, Any]] | None = None,
    ) -> None:
        """Add a trigger definition.

        Without ``event_types`` the trigger only fires through
        ``fire_trigger``.
        """
        self._grant.require(Permission.AUTOMATION)
        self._host.engine.registries.triggers.register(
            TriggerDefinition(
                type=trigger_type,
                name=name,
                description=description,
                category=category,
                event_types=tuple(LiveEventType(t) for t in event_types or []),
                matcher=matcher,
                fields=fields or [],
                origin=self.extension_id,
            )
        )

    def register_condition(
        self,
        operator: str,
        evaluator: Callable[[Any, Any], bool],
        name: str = "",
        accepts_missing: bool = False,
    ) -> None:
        self._grant.require(Permission.AUTOMATION)
        self._host.engine.registries.conditions.register(
            ConditionOperatorDefinition(
                type=operator,
                evaluator=evaluator,
                name=name or operator,
                accepts_missing=accepts_missing,
                origin=self.extension_id,
            )
        )

    def register_action(
        self,
        action_type: str,
        executor: Callable,
        name: str = "",
        description: str = "",
        category: str = "custom",
        fields: list[dict[str, Any]] | None = None,
    ) -> None:
        """Add an action; ``executor(params, context)`` may be async."""
        self._grant.require(Permission.AUTOMATION)
        self._host.engine.registries.actions.register(
            ActionDefinition(
                type=action_type,
                executor=executor,
                name=name or action_type,
                description=description,
                category=category,
                fields=fields or [],
                origin=self.extension_id,
            )
        )

    async def fire_trigger(
        self,
        trigger_type: str,
        data: dict[str, Any] | None = None,
    ) -> list["ExecutionRecord"]:
        """Run flows bound to ``trigger_type`` with the given data."""
        self._grant.require(Permission.AUTOMATION)
        return await self._host.engine.fire_trigger(trigger_type, data)

    # Revocation

    def revoke(self) -> dict[str, int]:
        """Remove everything this extension registered.

        After revocation every guarded operation raises CapabilityError.
        """
        extension_id = self.extension_id
        removed = {
            "routes": self._host.routes.remove_extension_routes(extension_id),
            "events": self._host.bus.unsubscribe_extension(extension_id),
            "channels": self._host.hub.unregister_extension(extension_id),
        }
        for kind, types in self._host.engine.registries.unregister_origin(extension_id).items():
            removed[kind] = len(types)
        self._grant = CapabilityGrant(extension_id, set())
        logger.debug(f"Revoked registrations of extension {extension_id}: {removed}")
        return removed
