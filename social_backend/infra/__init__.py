"""
Infrastructure module for Social Backend.

- RBAC (Role-Based Access Control) and the protected-role set used by the
  account erasure engine
"""

from social_backend.infra.rbac import (
    PROTECTED_ROLES,
    ROLE_PERMISSIONS,
    Permission,
    Role,
    check_permission,
    has_permission,
    is_protected,
)

__all__ = [
    "Role",
    "Permission",
    "ROLE_PERMISSIONS",
    "PROTECTED_ROLES",
    "has_permission",
    "check_permission",
    "is_protected",
]
