"""
SENTINEL AUTH - Role-Based Access Control (RBAC)

Computes a user's effective permissions and answers permission queries.

The role catalog is an explicit, read-only snapshot passed into every
call. Resolution of each role name on a user:

1. exact name match in the catalog;
2. otherwise, a built-in preset with that name;
3. otherwise, a custom role with no permissions (fail closed).

Step 2 means a catalog that omits a preset does not revoke it; an unknown
custom name grants nothing.
"""

from typing import Iterable, Optional, Protocol, Sequence, Tuple

from sentinel_auth.access.permissions import (
    Permission,
    PermissionLike,
    covers_all,
    covers_any,
    has_permission,
)
from sentinel_auth.access.roles import Role, build_role, is_preset_role, merge_roles
from sentinel_auth.exceptions import PermissionDeniedError


class Grantee(Protocol):
    """Anything carrying role names and per-user extra permissions."""

    roles: Sequence[str]
    extra_permissions: Sequence[Permission]


# ============================================================
# Effective Permissions
# ============================================================


def resolve_role(name: str, role_catalog: Optional[Iterable[Role]] = None) -> Role:
    """Resolve one role name against the catalog, presets, then empty."""
    if role_catalog:
        for role in role_catalog:
            if role.name == name:
                return role
    if is_preset_role(name):
        return build_role(name)
    return Role(name=name, permissions=())


def effective_permissions(
    user: Grantee,
    role_catalog: Optional[Iterable[Role]] = None,
) -> Tuple[Permission, ...]:
    """Union of the user's resolved role permissions and extra grants."""
    catalog = tuple(role_catalog) if role_catalog is not None else ()
    resolved = [resolve_role(name, catalog) for name in user.roles]
    return merge_roles([*resolved, user.extra_permissions])


# ============================================================
# Permission Checks
# ============================================================


def user_can(
    user: Grantee,
    required: PermissionLike,
    role_catalog: Optional[Iterable[Role]] = None,
) -> bool:
    """Check if the user holds a single permission."""
    return has_permission(effective_permissions(user, role_catalog), required)


def user_has_all(
    user: Grantee,
    required: Sequence[PermissionLike],
    role_catalog: Optional[Iterable[Role]] = None,
) -> bool:
    """Check if the user holds every required permission."""
    return covers_all(effective_permissions(user, role_catalog), required)


def user_has_any(
    user: Grantee,
    required: Sequence[PermissionLike],
    role_catalog: Optional[Iterable[Role]] = None,
) -> bool:
    """Check if the user holds at least one of the required permissions."""
    return covers_any(effective_permissions(user, role_catalog), required)


def assert_all(
    user: Grantee,
    required: Sequence[PermissionLike],
    role_catalog: Optional[Iterable[Role]] = None,
) -> None:
    """
    Require every permission.

    Raises:
        PermissionDeniedError: Listing the permissions not covered
    """
    granted = effective_permissions(user, role_catalog)
    missing = [str(r) for r in required if not has_permission(granted, r)]
    if missing:
        raise PermissionDeniedError(missing=missing, required=[str(r) for r in required])


def assert_any(
    user: Grantee,
    required: Sequence[PermissionLike],
    role_catalog: Optional[Iterable[Role]] = None,
) -> None:
    """
    Require at least one permission.

    Raises:
        PermissionDeniedError: Listing every required permission
    """
    if not user_has_any(user, required, role_catalog):
        listed = [str(r) for r in required]
        raise PermissionDeniedError(
            missing=listed,
            required=listed,
            message=f"Insufficient permissions. Requires any of: [{', '.join(listed)}]",
        )
