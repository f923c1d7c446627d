# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Extension runtime: lifecycle management for installed extensions."""

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from livecompanion.errors import (
    DependencyError,
    DuplicateExtensionError,
    ExtensionInitError,
    ExtensionLoadError,
    ExtensionNotFoundError,
    ManifestError,
    ReloadThrottledError,
)
from livecompanion.extensions.api import ExtensionAPI, ExtensionHost, config_key
from livecompanion.extensions.base import (
    ExtensionInstance,
    ExtensionManifest,
    ExtensionState,
)
from livecompanion.extensions.loader import (
    MANIFEST_FILE,
    ExtensionLoader,
    ExtensionStateFile,
    load_extension_class,
    parse_manifest,
)
from livecompanion.extensions.permissions import PermissionChecker
from livecompanion.logging_config import MemoryLogHandler

logger = logging.getLogger(__name__)

_BUSY_STATES = (ExtensionState.ACTIVE, ExtensionState.LOADING, ExtensionState.UNLOADING)


class ExtensionRuntime:
    """Owns every ExtensionInstance and drives its state transitions.

    A failure while loading one extension marks that extension ``error``
    and never stops the others from loading.
    """

    def __init__(
        self,
        loader: ExtensionLoader,
        host: ExtensionHost,
        state_file: ExtensionStateFile,
        log_handler: MemoryLogHandler | None = None,
        reload_warning_threshold: int = 10,
        reload_min_interval: float = 0.0,
    ) -> None:
        self._loader = loader
        self._host = host
        self._state_file = state_file
        self._log_handler = log_handler
        self._checker = PermissionChecker()
        self._instances: dict[str, ExtensionInstance] = {}
        self._last_reload: dict[str, float] = {}
        self.reload_warning_threshold = reload_warning_threshold
        self.reload_min_interval = reload_min_interval

    @property
    def extensions_dir(self) -> Path:
        return self._loader.extensions_dir

    def get(self, extension_id: str) -> ExtensionInstance | None:
        return self._instances.get(extension_id)

    def require(self, extension_id: str) -> ExtensionInstance:
        instance = self._instances.get(extension_id)
        if instance is None:
            raise ExtensionNotFoundError(f"Extension {extension_id} not found")
        return instance

    def instances(self) -> list[ExtensionInstance]:
        return [self._instances[k] for k in sorted(self._instances)]

    def reload_count(self, extension_id: str) -> int:
        return int(self._state_file.get(extension_id).get("reloadCount", 0))

    def is_enabled(self, manifest: ExtensionManifest) -> bool:
        stored = self._state_file.get(manifest.id)
        if "enabled" in stored:
            return bool(stored["enabled"])
        return manifest.enabled

    # Discovery and loading

    def discover(self) -> list[ExtensionInstance]:
        """Scan the extensions directory and register what is found.

        Manifests of instances that are not currently loaded are refreshed
        from disk.
        """
        self._state_file.load()
        found = []
        for path, manifest in self._loader.discover():
            instance = self._instances.get(manifest.id)
            if instance is not None and instance.path.resolve() != path.resolve():
                logger.error(
                    f"Duplicate extension id {manifest.id} in {path}, "
                    f"already provided by {instance.path}"
                )
                continue
            if instance is not None and instance.state in _BUSY_STATES:
                found.append(instance)
                continue

            if instance is None:
                instance = ExtensionInstance(manifest=manifest, path=path)
                self._instances[manifest.id] = instance
            instance.manifest = manifest
            if not self.is_enabled(manifest):
                instance.state = ExtensionState.DISABLED
            elif instance.state != ExtensionState.ERROR:
                instance.state = ExtensionState.DISCOVERED
            found.append(instance)

        logger.info(f"Discovered {len(found)} extensions")
        return found

    async def load_all(self) -> dict[str, ExtensionState]:
        """Load every discovered extension in dependency waves.

        Extensions whose dependencies are satisfied load concurrently; an
        extension is only started once all of its dependencies have been
        attempted. Cycles leave the remaining extensions in ``error``.
        """
        self.discover()
        pending = {
            inst.id: inst
            for inst in self._instances.values()
            if inst.state == ExtensionState.DISCOVERED
        }

        while pending:
            ready = [
                inst for inst in pending.values()
                if not any(dep in pending for dep in inst.manifest.dependencies)
            ]
            if not ready:
                for inst in pending.values():
                    self._mark_error(
                        inst,
                        DependencyError(
                            f"Dependency cycle among: {', '.join(sorted(pending))}"
                        ),
                    )
                break

            results = await asyncio.gather(
                *(self.load(inst.path, inst.manifest) for inst in ready),
                return_exceptions=True,
            )
            for inst, result in zip(ready, results):
                if isinstance(result, Exception):
                    logger.error(f"Failed to load extension {inst.id}: {result}")
                pending.pop(inst.id, None)

        return {inst.id: inst.state for inst in self.instances()}

    async def load(self, path: Path, manifest: ExtensionManifest) -> ExtensionInstance:
        """Load one extension and run its init hook.

        Load and init failures leave the instance in ``error`` and are
        returned, not raised.

        Raises:
            DuplicateExtensionError: If another extension with this id is
                already installed or loaded
        """
        existing = self._instances.get(manifest.id)
        if existing is not None and (
            existing.path.resolve() != path.resolve() or existing.state in _BUSY_STATES
        ):
            logger.error(
                f"Rejected duplicate extension id {manifest.id} from {path}",
                extra={"extension_id": manifest.id},
            )
            raise DuplicateExtensionError(f"Extension {manifest.id} is already loaded")

        instance = existing or ExtensionInstance(manifest=manifest, path=path)
        instance.manifest = manifest
        instance.state = ExtensionState.LOADING
        instance.error = None
        self._instances[manifest.id] = instance

        try:
            self._check_dependencies(manifest)
            extension_class = load_extension_class(path, manifest)
            grant = self._checker.grant_for(manifest.id, manifest.permissions)
            instance.api = ExtensionAPI(manifest, path, grant, self._host)
            try:
                extension = extension_class(instance.api)
                result = extension.init()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                raise ExtensionInitError(f"Initialization failed: {e}") from e
        except Exception as e:
            self._mark_error(instance, e)
            return instance

        instance.extension = extension
        instance.state = ExtensionState.ACTIVE
        instance.loaded_at = datetime.now(timezone.utc)
        self._state_file.update(
            manifest.id,
            enabled=True,
            loadedAt=instance.loaded_at.isoformat(),
        )
        logger.info(
            f"Loaded extension: {manifest.id} v{manifest.version}",
            extra={"extension_id": manifest.id},
        )
        return instance

    def _check_dependencies(self, manifest: ExtensionManifest) -> None:
        for dependency in manifest.dependencies:
            dep = self._instances.get(dependency)
            if dep is None:
                raise DependencyError(f"Missing dependency: {dependency}")
            if dep.state != ExtensionState.ACTIVE:
                raise DependencyError(
                    f"Dependency {dependency} is not active (state: {dep.state.value})"
                )

    def _mark_error(self, instance: ExtensionInstance, error: Exception) -> None:
        if instance.api is not None:
            instance.api.revoke()
        instance.api = None
        instance.extension = None
        instance.state = ExtensionState.ERROR
        instance.error = str(error)
        logger.error(
            f"Failed to load extension {instance.id}: {error}",
            extra={"extension_id": instance.id},
        )

    # Lifecycle operations

    async def unload(self, extension_id: str) -> ExtensionInstance:
        """Run the destroy hook and revoke everything the extension registered."""
        instance = self.require(extension_id)
        if instance.state != ExtensionState.ACTIVE:
            return instance

        dependents = [
            other.id for other in self._instances.values()
            if other.is_active and extension_id in other.manifest.dependencies
        ]
        if dependents:
            logger.warning(f"Unloading {extension_id} while {dependents} depend on it")

        instance.state = ExtensionState.UNLOADING
        if instance.extension is not None:
            try:
                result = instance.extension.destroy()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Error in destroy hook of extension {extension_id}: {e}",
                    extra={"extension_id": extension_id},
                )

        if instance.api is not None:
            removed = instance.api.revoke()
            logger.info(
                f"Unloaded extension {extension_id}, revoked {removed}",
                extra={"extension_id": extension_id},
            )
        instance.api = None
        instance.extension = None
        instance.state = ExtensionState.DISCOVERED
        return instance

    async def reload(self, extension_id: str) -> ExtensionInstance:
        """Unload, re-read the manifest from disk and load again.

        Raises:
            ReloadThrottledError: If called within ``reload_min_interval``
            ExtensionLoadError: If the extension is disabled
        """
        instance = self.require(extension_id)
        if instance.state == ExtensionState.DISABLED:
            raise ExtensionLoadError(f"Extension {extension_id} is disabled")

        now = time.monotonic()
        last = self._last_reload.get(extension_id)
        if self.reload_min_interval > 0 and last is not None:
            if now - last < self.reload_min_interval:
                raise ReloadThrottledError(
                    f"Extension {extension_id} was reloaded less than "
                    f"{self.reload_min_interval}s ago"
                )
        self._last_reload[extension_id] = now

        await self.unload(extension_id)
        count = self.reload_count(extension_id) + 1
        self._state_file.update(extension_id, reloadCount=count)
        if count > self.reload_warning_threshold:
            logger.warning(
                f"Extension {extension_id} has been reloaded {count} times; "
                "restart the application if memory usage grows",
                extra={"extension_id": extension_id},
            )

        try:
            manifest = parse_manifest(instance.path / MANIFEST_FILE)
        except ManifestError as e:
            self._mark_error(instance, e)
            return instance
        if manifest.id != extension_id:
            self._mark_error(instance, ManifestError(f"Manifest id changed to {manifest.id}"))
            return instance
        return await self.load(instance.path, manifest)

    async def reload_all(self) -> dict[str, ExtensionState]:
        """Reload every active extension, respecting dependencies."""
        active = [inst.id for inst in self.instances() if inst.is_active]
        for extension_id in reversed(active):
            await self.unload(extension_id)
            self._state_file.update(extension_id, reloadCount=self.reload_count(extension_id) + 1)
        return await self.load_all()

    async def enable(self, extension_id: str) -> ExtensionInstance:
        instance = self.require(extension_id)
        self._state_file.update(extension_id, enabled=True)
        if instance.state in _BUSY_STATES:
            return instance

        try:
            manifest = parse_manifest(instance.path / MANIFEST_FILE)
        except ManifestError as e:
            self._mark_error(instance, e)
            return instance
        return await self.load(instance.path, manifest)

    async def disable(self, extension_id: str) -> ExtensionInstance:
        instance = await self.unload(extension_id)
        instance.state = ExtensionState.DISABLED
        self._state_file.update(extension_id, enabled=False)
        logger.info(f"Disabled extension {extension_id}", extra={"extension_id": extension_id})
        return instance

    async def install(self, zip_path: Path) -> ExtensionInstance:
        """Install an uploaded package and load it.

        Raises:
            UploadValidationError: If the package is rejected
            DuplicateExtensionError: If the extension is already installed
        """
        path, manifest = self._loader.install_from_zip(zip_path, known_ids=self._instances.keys())
        self._state_file.update(manifest.id, enabled=True, reloadCount=0)
        return await self.load(path, manifest)

    async def delete(self, extension_id: str, purge_config: bool = True) -> None:
        """Unload an extension and remove its files and state entry.

        Args:
            extension_id: Extension to delete
            purge_config: Also drop its stored config values
        """
        await self.unload(extension_id)
        self._loader.uninstall(extension_id)
        self._state_file.remove(extension_id)
        if purge_config:
            self._host.settings_store.delete_prefix(config_key(extension_id, ""))
        self._instances.pop(extension_id, None)
        self._last_reload.pop(extension_id, None)
        logger.info(f"Deleted extension {extension_id}")

    async def shutdown(self) -> None:
        for instance in reversed(self.instances()):
            if instance.is_active:
                await self.unload(instance.id)

    # Introspection

    def get_logs(
        self,
        extension_id: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        if self._log_handler is None:
            return []
        return self._log_handler.get_records(extension_id=extension_id, limit=limit)

    def describe(self, instance: ExtensionInstance) -> dict[str, Any]:
        manifest = instance.manifest
        return {
            "id": manifest.id,
            "name": manifest.name,
            "version": manifest.version,
            "description": manifest.description,
            "author": manifest.author,
            "type": manifest.type,
            "entry": manifest.entry,
            "state": instance.state,
            "error": instance.error,
            "permissions": sorted(p.value for p in manifest.permissions),
            "permission_details": self._checker.format_permissions_for_display(
                manifest.permissions
            ),
            "dependencies": list(manifest.dependencies),
            "loaded_at": instance.loaded_at,
            "reload_count": self.reload_count(manifest.id),
            "routes": self._host.routes.get_extension_routes(manifest.id),
            "channels": self._host.hub.get_extension_channels(manifest.id),
            "events": [e.value for e in self._host.bus.get_subscribed_events(manifest.id)],
        }
