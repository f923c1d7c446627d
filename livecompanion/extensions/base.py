# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Base classes and interfaces for the extension system."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from livecompanion.extensions.api import ExtensionAPI


class ExtensionState(str, Enum):
    """Lifecycle states of an installed extension."""

    DISCOVERED = "discovered"
    LOADING = "loading"
    ACTIVE = "active"
    ERROR = "error"
    DISABLED = "disabled"
    UNLOADING = "unloading"


class Permission(str, Enum):
    """Capabilities an extension can request in its manifest.

    Logging and the directory/URL helpers are always available.
    """

    ROUTES = "routes"
    EVENTS = "events"
    CHANNELS = "channels"
    CONFIG = "config"
    BROADCAST = "broadcast"
    AUTOMATION = "automation"
    FILESYSTEM = "filesystem"


@dataclass
class ExtensionManifest:
    """Extension manifest containing metadata and requirements."""

    id: str
    name: str
    version: str
    entry: str
    description: str = ""
    author: str = ""
    enabled: bool = True
    type: str = "extension"
    permissions: set[Permission] = field(default_factory=set)
    dependencies: list[str] = field(default_factory=list)
    # Default values returned by get_config when nothing is stored
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def entry_file(self) -> str:
        """File part of ``file.py[:ClassName]``."""
        return self.entry.split(":", 1)[0]

    @property
    def entry_class(self) -> str | None:
        """Class part of ``file.py:ClassName``, if given."""
        parts = self.entry.split(":", 1)
        return parts[1] if len(parts) == 2 and parts[1] else None


class BaseExtension(ABC):
    """Base class that all extensions must extend.

    The runtime constructs the extension with its capability API and then
    awaits ``init``. Everything the extension registers during ``init`` is
    revoked again on unload, after ``destroy`` has run.
    """

    def __init__(self, api: "ExtensionAPI") -> None:
        self.api = api

    @property
    def id(self) -> str:
        return self.api.extension_id

    @abstractmethod
    def init(self) -> Any:
        """Register routes, handlers and registry entries.

        May be a coroutine function. Raising here puts the extension into
        the Error state without affecting other extensions.
        """
        ...

    def destroy(self) -> Any:  # noqa: B027
        """Called before the extension is unloaded. May be async."""


@dataclass
class ExtensionInstance:
    """Runtime bookkeeping for one installed extension."""

    manifest: ExtensionManifest
    path: Path
    state: ExtensionState = ExtensionState.DISCOVERED
    error: str | None = None
    extension: BaseExtension | None = None
    api: "ExtensionAPI | None" = None
    loaded_at: datetime | None = None

    @property
    def id(self) -> str:
        return self.manifest.id

    @property
    def is_active(self) -> bool:
        return self.state == ExtensionState.ACTIVE
