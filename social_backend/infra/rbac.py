"""
Role-Based Access Control (RBAC) for Social Backend.

Roles:
- USER: Regular member (can delete own account)
- MODERATOR: Can preview erasures for support audits
- ADMIN: Can erase or deactivate other accounts; is itself protected
  from the self-service erasure path

Stored role values are matched case-insensitively so legacy rows written
as "ADMIN" resolve to Role.ADMIN.
"""

from __future__ import annotations

import logging
from enum import Enum

from social_backend.lib.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


# =============================================================================
# Role and Permission Definitions
# =============================================================================


class Role(Enum):
    """User roles in Social Backend."""

    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | None) -> Role:
        """Resolve a stored role value. Missing or unknown values fall back to USER."""
        if not value:
            return cls.USER
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning("Unknown stored role %r, treating as user", value)
            return cls.USER


class Permission(Enum):
    """Permissions that can be granted to roles."""

    DELETE_OWN_ACCOUNT = "delete_own_account"
    PREVIEW_ERASURE = "preview_erasure"
    MANAGE_USERS = "manage_users"

    def __str__(self) -> str:
        return self.value


ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.USER: {
        Permission.DELETE_OWN_ACCOUNT,
    },
    Role.MODERATOR: {
        Permission.DELETE_OWN_ACCOUNT,
        Permission.PREVIEW_ERASURE,
    },
    Role.ADMIN: {
        Permission.PREVIEW_ERASURE,
        Permission.MANAGE_USERS,
    },
}

# Accounts with these roles cannot go through the erasure engine at all.
PROTECTED_ROLES: frozenset[Role] = frozenset({Role.ADMIN})


# =============================================================================
# Permission Checking
# =============================================================================


def has_permission(role: Role, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Example:
        >>> has_permission(Role.ADMIN, Permission.MANAGE_USERS)
        True
        >>> has_permission(Role.USER, Permission.MANAGE_USERS)
        False
    """
    return permission in ROLE_PERMISSIONS.get(role, set())


def check_permission(
    role: Role,
    permission: Permission,
    raise_on_failure: bool = False,
) -> bool:
    """
    Check permission with optional exception raising.

    Raises:
        PermissionDeniedError: If permission denied and raise_on_failure=True
    """
    has_perm = has_permission(role, permission)

    if not has_perm and raise_on_failure:
        raise PermissionDeniedError(
            f"Role '{role.value}' does not have permission '{permission.value}'"
        )

    return has_perm


def is_protected(role: Role) -> bool:
    """True if accounts with this role must not be erased by the engine."""
    return role in PROTECTED_ROLES


__all__ = [
    "Role",
    "Permission",
    "ROLE_PERMISSIONS",
    "PROTECTED_ROLES",
    "has_permission",
    "check_permission",
    "is_protected",
]
