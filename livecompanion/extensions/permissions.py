# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Permission checking for the extension system."""

from livecompanion.errors import CapabilityError
from livecompanion.extensions.base import Permission

# Permissions that reach outside the extension's own namespace
DANGEROUS_PERMISSIONS: set[Permission] = {
    Permission.ROUTES,
    Permission.FILESYSTEM,
    Permission.AUTOMATION,
}


class CapabilityGrant:
    """The set of capability operations one extension may invoke.

    Derived once from the manifest at load time and not changed afterwards.
    """

    def __init__(self, extension_id: str, permissions: set[Permission]) -> None:
        self.extension_id = extension_id
        self._permissions = frozenset(permissions)

    @property
    def permissions(self) -> frozenset[Permission]:
        return self._permissions

    def allows(self, permission: Permission) -> bool:
        return permission in self._permissions

    def require(self, permission: Permission) -> None:
        """Raise unless the permission was granted.

        Raises:
            CapabilityError: If the extension lacks the permission
        """
        if permission not in self._permissions:
            raise CapabilityError(self.extension_id, permission.value)


class PermissionChecker:
    """Validates and checks extension permissions."""

    def parse_permissions(
        self,
        permission_strings: list[str],
    ) -> tuple[set[Permission], list[str]]:
        """Parse a list of permission strings into Permission enums.

        Args:
            permission_strings: List of permission strings

        Returns:
            Tuple of (valid permissions set, list of invalid permission strings)
        """
        valid: set[Permission] = set()
        invalid: list[str] = []

        for perm_str in permission_strings:
            try:
                valid.add(Permission(str(perm_str).lower()))
            except ValueError:
                invalid.append(perm_str)

        return valid, invalid

    def grant_for(self, extension_id: str, permissions: set[Permission]) -> CapabilityGrant:
        return CapabilityGrant(extension_id, permissions)

    def format_permissions_for_display(
        self,
        permissions: set[Permission],
    ) -> list[dict[str, str | bool]]:
        """Format permissions for UI display.

        Args:
            permissions: Set of permissions

        Returns:
            List of dicts with 'value', 'label', and 'dangerous' keys
        """
        return [
            {
                "value": perm.value,
                "label": perm.value.replace("_", " ").title(),
                "dangerous": perm in DANGEROUS_PERMISSIONS,
            }
            for perm in sorted(permissions, key=lambda p: p.value)
        ]
