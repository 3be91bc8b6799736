# core/permission_helpers.py

"""
Role permissions for the scoped API.

Permissions say which operations a caller may invoke. Which rows those
operations touch is the building scope's job (core/scoped_query.py);
tenants are additionally held to their own tenancy.
"""

from typing import FrozenSet

from fastapi import Depends, HTTPException

from core.permissions import DEFAULT_ROLE, ROLE_PERMISSIONS, SELF_SCOPED_ROLES, WILDCARD
from dependencies.auth import CurrentUser, get_current_user


def get_effective_permissions(user: CurrentUser) -> FrozenSet[str]:
    """Role grants plus any extra permissions stored in user metadata."""
    granted = set(ROLE_PERMISSIONS.get(user.role, ROLE_PERMISSIONS[DEFAULT_ROLE]))
    if isinstance(user.permissions, list):
        granted.update(p for p in user.permissions if isinstance(p, str))
    return frozenset(granted)


def has_permission(user: CurrentUser, permission: str) -> bool:
    effective = get_effective_permissions(user)
    return WILDCARD in effective or permission in effective


def is_self_scoped(user: CurrentUser) -> bool:
    """Tenant-style callers (and unknown roles, which get tenant grants) only see their own tenancy's rows."""
    return user.role in SELF_SCOPED_ROLES or user.role not in ROLE_PERMISSIONS


def requires_permission(permission: str):
    """
    Route dependency:

        @router.get("", dependencies=[Depends(requires_permission("payments:read"))])
    """

    def check(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if has_permission(current_user, permission):
            return current_user
        raise HTTPException(
            status_code=403,
            detail=f"Insufficient permissions: '{permission}' required",
        )

    return check
