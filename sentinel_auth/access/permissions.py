"""
SENTINEL AUTH - Permission Model

Canonical permission vocabulary, validation and implication logic.

A permission is ``resource:action`` or ``resource:*``. Only pairs listed
in the canonical catalog are valid; per-resource wildcards are always
valid. There is no global wildcard.
"""

from enum import Enum
from typing import Dict, Iterable, Tuple, Union

from sentinel_auth.exceptions import InvalidPermissionError


# ============================================================
# Vocabulary
# ============================================================


class Resource(str, Enum):
    """Resources managed by the auth engine."""

    USER = "user"
    ROLE = "role"
    SESSION = "session"
    MFA = "mfa"
    AUTH = "auth"
    AUDIT = "audit"
    OAUTH = "oauth"


class Action(str, Enum):
    """Actions that may be granted on a resource."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    VERIFY = "verify"
    SETUP = "setup"
    LOGIN = "login"
    LOGOUT = "logout"
    LIST = "list"
    INVALIDATE = "invalidate"
    ROTATE = "rotate"


WILDCARD = "*"

_RESOURCES = frozenset(r.value for r in Resource)
_ACTIONS = frozenset(a.value for a in Action)


# ============================================================
# Permissions
# ============================================================


class Permission(str, Enum):
    """
    All permissions in the system.

    Catalog entries come first in canonical order, followed by the
    per-resource wildcards. Definition order is the sort order used
    everywhere permissions are normalized.
    """

    # User Management
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_LIST = "user:list"

    # Roles
    ROLE_READ = "role:read"
    ROLE_LIST = "role:list"
    ROLE_ASSIGN = "role:assign"

    # Sessions
    SESSION_READ = "session:read"
    SESSION_LIST = "session:list"
    SESSION_INVALIDATE = "session:invalidate"

    # MFA
    MFA_SETUP = "mfa:setup"
    MFA_VERIFY = "mfa:verify"

    # Authentication
    AUTH_LOGIN = "auth:login"
    AUTH_LOGOUT = "auth:logout"

    # Audit
    AUDIT_READ = "audit:read"

    # OAuth
    OAUTH_READ = "oauth:read"
    OAUTH_LIST = "oauth:list"
    OAUTH_DELETE = "oauth:delete"

    # Wildcards (always sort last)
    USER_ALL = "user:*"
    ROLE_ALL = "role:*"
    SESSION_ALL = "session:*"
    MFA_ALL = "mfa:*"
    AUTH_ALL = "auth:*"
    AUDIT_ALL = "audit:*"
    OAUTH_ALL = "oauth:*"

    def __str__(self) -> str:
        return self.value

    @property
    def resource(self) -> Resource:
        return Resource(self.value.split(":", 1)[0])

    @property
    def action(self) -> str:
        """Action part; ``"*"`` for wildcards."""
        return self.value.split(":", 1)[1]

    @property
    def is_wildcard(self) -> bool:
        return self.action == WILDCARD

    @classmethod
    def parse(cls, value: Union[str, "Permission"]) -> "Permission":
        """
        The single validating constructor for permissions.

        Raises:
            InvalidPermissionError: If the value is not in the catalog
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not is_valid_permission(value):
            raise InvalidPermissionError(str(value))
        return cls(value)

    @classmethod
    def wildcard_for(cls, resource: Union[str, Resource]) -> "Permission":
        """Wildcard permission covering every action of a resource."""
        res = Resource(resource)
        return next(p for p in cls if p.is_wildcard and p.resource is res)


PERMISSION_CATALOG: Tuple[Permission, ...] = tuple(
    p for p in Permission if not p.is_wildcard
)

_CATALOG_VALUES = frozenset(p.value for p in PERMISSION_CATALOG)

PERMISSION_ORDER: Dict[Permission, int] = {p: i for i, p in enumerate(Permission)}

PermissionLike = Union[str, Permission]


# ============================================================
# Validation
# ============================================================


def is_valid_permission(value: str) -> bool:
    """Check that a string is ``resource:action`` from the catalog, or ``resource:*``."""
    if not isinstance(value, str):
        return False
    parts = value.split(":")
    if len(parts) != 2:
        return False
    resource, action = parts
    if resource not in _RESOURCES:
        return False
    if action == WILDCARD:
        return True
    return action in _ACTIONS and value in _CATALOG_VALUES


# ============================================================
# Implication & Coverage
# ============================================================


def implies(grant: PermissionLike, required: PermissionLike) -> bool:
    """
    Check whether a granted permission covers a required one.

    Same resource, and either the grant is the resource wildcard or the
    actions match exactly.
    """
    g = Permission.parse(grant)
    r = Permission.parse(required)
    if g.resource is not r.resource:
        return False
    if g.is_wildcard:
        return True
    return g.action == r.action


def has_permission(grants: Iterable[PermissionLike], required: PermissionLike) -> bool:
    """Check if a collection of grants covers a single required permission."""
    return any(implies(g, required) for g in grants)


def covers_all(grants: Iterable[PermissionLike], required: Iterable[PermissionLike]) -> bool:
    """Every required permission is implied by some grant."""
    granted = tuple(grants)
    return all(has_permission(granted, r) for r in required)


def covers_any(grants: Iterable[PermissionLike], required: Iterable[PermissionLike]) -> bool:
    """At least one required permission is implied by some grant."""
    granted = tuple(grants)
    return any(has_permission(granted, r) for r in required)


def permissions_for(resource: Union[str, Resource]) -> Tuple[Permission, ...]:
    """Catalog permissions of a single resource (wildcard excluded)."""
    res = Resource(resource)
    return tuple(p for p in PERMISSION_CATALOG if p.resource is res)
