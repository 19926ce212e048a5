"""
SENTINEL AUTH - Role Model

Named bundles of permissions: built-in presets, custom extras and the
merge logic used to compute effective permissions across roles.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sentinel_auth.access.permissions import (
    PERMISSION_ORDER,
    Permission,
    PermissionLike,
    has_permission,
    is_valid_permission,
)


# ============================================================
# Role Presets
# ============================================================


class RoleName:
    """Names of the built-in role presets."""

    ADMIN = "admin"
    SECURITY_ANALYST = "security-analyst"
    SUPPORT = "support"
    USER = "user"


ROLE_PRESETS: Mapping[str, Tuple[Permission, ...]] = {
    RoleName.ADMIN: (
        Permission.USER_ALL,
        Permission.ROLE_ASSIGN,
        Permission.ROLE_READ,
        Permission.ROLE_LIST,
        Permission.SESSION_LIST,
        Permission.SESSION_INVALIDATE,
        Permission.MFA_SETUP,
        Permission.MFA_VERIFY,
        Permission.AUTH_LOGIN,
        Permission.AUTH_LOGOUT,
        Permission.AUDIT_READ,
        Permission.OAUTH_LIST,
        Permission.OAUTH_READ,
        Permission.OAUTH_DELETE,
    ),
    RoleName.SECURITY_ANALYST: (
        Permission.USER_READ,
        Permission.USER_LIST,
        Permission.ROLE_READ,
        Permission.ROLE_LIST,
        Permission.SESSION_LIST,
        Permission.SESSION_READ,
        Permission.SESSION_INVALIDATE,
        Permission.AUDIT_READ,
    ),
    RoleName.SUPPORT: (
        Permission.USER_READ,
        Permission.USER_LIST,
        Permission.MFA_VERIFY,
        Permission.AUTH_LOGIN,
        Permission.AUTH_LOGOUT,
    ),
    RoleName.USER: (
        Permission.AUTH_LOGIN,
        Permission.AUTH_LOGOUT,
        Permission.MFA_SETUP,
        Permission.MFA_VERIFY,
        Permission.USER_READ,
        Permission.USER_UPDATE,
    ),
}


# ============================================================
# Role
# ============================================================


@dataclass(frozen=True)
class Role:
    """A named role with its normalized permissions."""

    name: str
    permissions: Tuple[Permission, ...] = field(default_factory=tuple)
    description: Optional[str] = None

    @property
    def id(self) -> str:
        """Roles are keyed by name in the role catalog."""
        return self.name

    def has_permission(self, permission: PermissionLike) -> bool:
        return has_permission(self.permissions, permission)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "permissions": [p.value for p in self.permissions],
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Role":
        """Build a role from a stored record, dropping unknown permissions."""
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("Role record without a name")
        perms = data.get("permissions")
        description = data.get("description")
        return cls(
            name=name,
            permissions=normalize_permissions(perms if isinstance(perms, list) else []),
            description=description if isinstance(description, str) else None,
        )


# ============================================================
# Functions
# ============================================================


def is_preset_role(name: str) -> bool:
    """Check if a name is one of the built-in presets."""
    return name in ROLE_PRESETS


def preset_permissions(name: str) -> Tuple[Permission, ...]:
    """
    Permissions of a built-in preset.

    Unknown names are custom roles with no implicit grants and return an
    empty tuple.
    """
    return ROLE_PRESETS.get(name, ())


def _sort_key(permission: Permission) -> int:
    return PERMISSION_ORDER[permission]


def normalize_permissions(values: Iterable[PermissionLike]) -> Tuple[Permission, ...]:
    """
    Filter to valid permissions, deduplicate and sort by catalog order.

    Invalid entries are dropped silently. Wildcards sort after every
    catalog permission, in resource order. Idempotent and independent of
    input order.
    """
    unique = set()
    for value in values:
        if isinstance(value, Permission):
            unique.add(value)
        elif isinstance(value, str) and is_valid_permission(value):
            unique.add(Permission.parse(value))
    return tuple(sorted(unique, key=_sort_key))


def build_role(
    name: str,
    description: Optional[str] = None,
    extra_permissions: Sequence[PermissionLike] = (),
) -> Role:
    """
    Create a role from a name and optional extra permissions.

    Preset names start from the preset's permissions; custom names start
    empty.
    """
    merged = normalize_permissions([*preset_permissions(name), *extra_permissions])
    return Role(name=name, permissions=merged, description=description)


def merge_roles(
    inputs: Iterable[Union[Role, Iterable[PermissionLike]]],
) -> Tuple[Permission, ...]:
    """Flatten roles and loose permission lists into one normalized set."""
    collected: List[PermissionLike] = []
    for item in inputs:
        if isinstance(item, Role):
            collected.extend(item.permissions)
        else:
            collected.extend(item)
    return normalize_permissions(collected)


def is_valid_role(obj: Any) -> bool:
    """Structural check for a role record read from storage."""
    if not isinstance(obj, Mapping):
        return False
    if not isinstance(obj.get("name"), str) or not obj["name"].strip():
        return False
    perms = obj.get("permissions")
    if not isinstance(perms, list):
        return False
    return all(isinstance(p, str) and is_valid_permission(p) for p in perms)


def preset_roles() -> List[Role]:
    """Built-in presets as Role objects (used to seed a role catalog)."""
    return [
        build_role(name, description=f"Preset {name}")
        for name in ROLE_PRESETS
    ]
