# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Extension discovery, installation and module loading."""

import importlib.util
import json
import logging
import re
import shutil
import sys
import zipfile
from collections.abc import Collection
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any

from livecompanion.errors import (
    DuplicateExtensionError,
    ExtensionLoadError,
    ManifestError,
    UploadValidationError,
)
from livecompanion.extensions.base import BaseExtension, ExtensionManifest
from livecompanion.extensions.permissions import DANGEROUS_PERMISSIONS, PermissionChecker

logger = logging.getLogger(__name__)

MANIFEST_FILE = "extension.json"
EXTENSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def parse_manifest_data(data: Any) -> ExtensionManifest:
    """Validate a decoded manifest.

    Raises:
        ManifestError: If required fields are missing or malformed
    """
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a JSON object")

    required_fields = ["id", "name", "version", "entry"]
    for field in required_fields:
        if not data.get(field):
            raise ManifestError(f"Missing required field: {field}")

    extension_id = str(data["id"])
    if not EXTENSION_ID_PATTERN.match(extension_id):
        raise ManifestError(
            f"Invalid extension ID: {extension_id}. "
            "Use only alphanumeric characters, hyphens, and underscores."
        )

    entry = str(data["entry"])
    if not entry.split(":", 1)[0].endswith(".py"):
        raise ManifestError(f"Entry must be a Python file: {entry}")

    perms_data = data.get("permissions", [])
    if not isinstance(perms_data, list):
        raise ManifestError("permissions must be a list")
    permissions, invalid = PermissionChecker().parse_permissions(perms_data)
    for unknown in invalid:
        logger.warning(f"Extension {extension_id}: unknown permission {unknown}")

    dependencies = data.get("dependencies", [])
    if not isinstance(dependencies, list) or not all(isinstance(d, str) for d in dependencies):
        raise ManifestError("dependencies must be a list of extension ids")

    config = data.get("config", {})
    if not isinstance(config, dict):
        raise ManifestError("config must be an object")

    return ExtensionManifest(
        id=extension_id,
        name=str(data["name"]),
        version=str(data["version"]),
        entry=entry,
        description=str(data.get("description", "")),
        author=str(data.get("author", "")),
        enabled=bool(data.get("enabled", True)),
        type=str(data.get("type", "extension")),
        permissions=permissions,
        dependencies=list(dependencies),
        config=dict(config),
    )


def parse_manifest(manifest_path: Path) -> ExtensionManifest:
    """Parse and validate an extension manifest file.

    Args:
        manifest_path: Path to the manifest JSON file

    Returns:
        Parsed ExtensionManifest dataclass

    Raises:
        ManifestError: If manifest is invalid
    """
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON in manifest: {e}") from e
    except OSError as e:
        raise ManifestError(f"Could not read manifest: {e}") from e

    return parse_manifest_data(data)


def load_extension_class(
    extension_path: Path,
    manifest: ExtensionManifest,
) -> type[BaseExtension]:
    """Load the extension class named by the manifest entry.

    ``entry`` is ``file.py`` (first BaseExtension subclass in the module)
    or ``file.py:ClassName``.

    Raises:
        ExtensionLoadError: If the module or class cannot be loaded
    """
    module_path = (extension_path / manifest.entry_file).resolve()
    if extension_path.resolve() not in module_path.parents:
        raise ExtensionLoadError(f"Entry outside extension directory: {manifest.entry}")
    if not module_path.exists():
        raise ExtensionLoadError(f"Extension module not found: {module_path}")

    module_name = f"livecompanion_ext.{manifest.id}.{module_path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise ExtensionLoadError(f"Could not load extension spec: {module_path}")

    # A fresh module object on every load, so reload picks up code changes.
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module

    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise ExtensionLoadError(f"Error executing extension module: {e}") from e

    if manifest.entry_class:
        extension_class = getattr(module, manifest.entry_class, None)
        if not (
            isinstance(extension_class, type)
            and issubclass(extension_class, BaseExtension)
        ):
            raise ExtensionLoadError(
                f"{manifest.entry_class} in {module_path.name} is not a BaseExtension subclass"
            )
        return extension_class

    for attr_name in dir(module):
        attr = getattr(module, attr_name)
        if (
            isinstance(attr, type)
            and issubclass(attr, BaseExtension)
            and attr is not BaseExtension
            and attr.__module__ == module.__name__
        ):
            return attr

    raise ExtensionLoadError(
        f"No BaseExtension subclass found in {module_path}. "
        "Extension must define a class that extends BaseExtension."
    )


def _check_archive_members(archive: zipfile.ZipFile, target: Path) -> None:
    root = target.resolve()
    for name in archive.namelist():
        destination = (root / name).resolve()
        if destination != root and root not in destination.parents:
            raise UploadValidationError(f"Archive member escapes target directory: {name}")


class ExtensionLoader:
    """Handles extension discovery and installation on disk."""

    def __init__(self, extensions_dir: Path) -> None:
        self.extensions_dir = extensions_dir
        self.extensions_dir.mkdir(parents=True, exist_ok=True)

    def discover(self) -> list[tuple[Path, ExtensionManifest]]:
        """Find all extensions with a valid manifest.

        Invalid manifests are logged and skipped.
        """
        discovered: list[tuple[Path, ExtensionManifest]] = []
        logger.debug(f"Discovering extensions in {self.extensions_dir}")

        for entry in sorted(self.extensions_dir.iterdir()):
            if not entry.is_dir():
                continue
            if entry.name.startswith(".") or entry.name == "__pycache__":
                continue

            manifest_path = entry / MANIFEST_FILE
            if not manifest_path.exists():
                logger.warning(f"No manifest found in {entry}")
                continue

            try:
                manifest = parse_manifest(manifest_path)
            except ManifestError as e:
                logger.error(f"Invalid manifest in {entry}: {e}")
                continue
            discovered.append((entry, manifest))
            logger.debug(f"Discovered extension: {manifest.id} v{manifest.version}")

        return discovered

    def install_from_zip(
        self,
        zip_path: Path,
        known_ids: Collection[str] = (),
    ) -> tuple[Path, ExtensionManifest]:
        """Install an extension from a ZIP file.

        The archive is extracted and validated in a temporary directory;
        the extensions directory is only touched once validation passed.

        Args:
            zip_path: Uploaded archive
            known_ids: Ids already registered, possibly from directories
                named differently than the id

        Returns:
            Tuple of (installed path, manifest)

        Raises:
            UploadValidationError: If the archive is invalid
            DuplicateExtensionError: If the extension id is already installed
        """
        if not zipfile.is_zipfile(zip_path):
            raise UploadValidationError("Not a valid ZIP file")

        with TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)

            try:
                with zipfile.ZipFile(zip_path, "r") as zf:
                    _check_archive_members(zf, temp_path)
                    zf.extractall(temp_path)
            except zipfile.BadZipFile as e:
                raise UploadValidationError(f"Corrupted ZIP file: {e}") from e

            # Manifest may be at the root or inside a single top-level folder
            source_path = temp_path
            manifest_path = temp_path / MANIFEST_FILE
            if not manifest_path.exists():
                subdirs = [
                    d for d in temp_path.iterdir()
                    if d.is_dir() and not d.name.startswith((".", "__"))
                ]
                if len(subdirs) == 1:
                    source_path = subdirs[0]
                    manifest_path = source_path / MANIFEST_FILE

            if not manifest_path.exists():
                raise UploadValidationError(f"No {MANIFEST_FILE} found in archive")

            try:
                manifest = parse_manifest(manifest_path)
            except ManifestError as e:
                raise UploadValidationError(str(e)) from e

            if not (source_path / manifest.entry_file).is_file():
                raise UploadValidationError(f"Entry file not found: {manifest.entry_file}")

            target_dir = self.extensions_dir / manifest.id
            if manifest.id in known_ids or target_dir.exists():
                raise DuplicateExtensionError(f"Extension {manifest.id} is already installed")

            dangerous = manifest.permissions & DANGEROUS_PERMISSIONS
            if dangerous:
                logger.warning(
                    f"Extension {manifest.id} requests permissions: "
                    f"{sorted(p.value for p in dangerous)}"
                )

            try:
                shutil.copytree(source_path, target_dir)
            except OSError as e:
                shutil.rmtree(target_dir, ignore_errors=True)
                raise UploadValidationError(f"Could not install extension: {e}") from e

        logger.info(f"Installed extension {manifest.id} v{manifest.version}")
        return target_dir, manifest

    def uninstall(self, extension_id: str) -> bool:
        extension_dir = self.get_extension_path(extension_id)
        if extension_dir is None:
            logger.warning(f"Extension directory not found: {extension_id}")
            return False
        shutil.rmtree(extension_dir)
        logger.info(f"Uninstalled extension {extension_id}")
        return True

    def get_extension_path(self, extension_id: str) -> Path | None:
        extension_path = self.extensions_dir / extension_id
        if extension_path.is_dir():
            return extension_path
        return None


class ExtensionStateFile:
    """Persisted ``{id: {enabled, loadedAt, reloadCount}}`` mapping."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._state: dict[str, dict[str, Any]] = {}

    def load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            self._state = {}
            return self._state
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read extension state file {self.path}: {e}")
            data = {}
        self._state = data if isinstance(data, dict) else {}
        return self._state

    def save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._state, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Could not write extension state file {self.path}: {e}")

    def get(self, extension_id: str) -> dict[str, Any]:
        return self._state.get(extension_id, {})

    def update(self, extension_id: str, **fields: Any) -> None:
        entry = self._state.setdefault(
            extension_id, {"enabled": True, "loadedAt": None, "reloadCount": 0}
        )
        entry.update(fields)
        self.save()

    def remove(self, extension_id: str) -> None:
        if self._state.pop(extension_id, None) is not None:
            self.save()
