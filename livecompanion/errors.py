# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Exception taxonomy.

Every failure is contained at the boundary where it originates; these types
exist so each boundary can tell what it is catching.
"""


class LiveCompanionError(Exception):
    """Base class for all application errors."""


# Extensions


class ManifestError(LiveCompanionError):
    """An extension manifest is missing, unreadable or invalid."""


class ExtensionLoadError(LiveCompanionError):
    """An extension could not be loaded (module, class, duplicate id...)."""


class ExtensionInitError(ExtensionLoadError):
    """An extension's constructor or init hook raised."""


class DependencyError(ExtensionLoadError):
    """A declared dependency is missing, inactive or cyclic."""


class DuplicateExtensionError(ExtensionLoadError):
    """An extension with the same id is already loaded."""


class ReloadThrottledError(ExtensionLoadError):
    """A reload was requested sooner than the configured minimum interval."""


class CapabilityError(LiveCompanionError):
    """An extension invoked an operation outside its capability grant."""

    def __init__(self, extension_id: str, permission: str) -> None:
        super().__init__(
            f"Extension {extension_id} lacks the '{permission}' permission"
        )
        self.extension_id = extension_id
        self.permission = permission


class UploadValidationError(LiveCompanionError):
    """An uploaded extension package was rejected before installation."""


class ExtensionNotFoundError(LiveCompanionError):
    """No extension with the given id is installed."""


# Settings


class SettingsDecodeError(LiveCompanionError):
    """A stored setting does not contain valid JSON."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored value for '{key}' is not valid JSON: {reason}")
        self.key = key


# Automation


class ConditionEvaluationError(LiveCompanionError):
    """A condition leaf could not be evaluated (missing field, bad operand)."""


class ActionExecutionError(LiveCompanionError):
    """An action failed while executing."""


class FlowNotFoundError(LiveCompanionError):
    """No flow with the given id exists."""


class FlowValidationError(LiveCompanionError):
    """A flow definition is invalid."""
