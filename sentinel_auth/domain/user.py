"""
User Entity

Identity, credential hash, role assignment, MFA state and lockout
counters. Sensitive fields live here; never expose a User directly, use
``sentinel_auth.auth.schemas.PublicUser``.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sentinel_auth.access.permissions import Permission, PermissionLike
from sentinel_auth.access.roles import RoleName, normalize_permissions
from sentinel_auth.domain.timestamps import parse_timestamp, to_epoch_ms, utcnow


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_ROLES: Tuple[str, ...] = (RoleName.USER,)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(normalize_email(email)))


def normalize_roles(roles: Iterable[str]) -> Tuple[str, ...]:
    """Trim names, drop empties and duplicates, keep first-seen order."""
    seen: Dict[str, None] = {}
    for role in roles:
        name = role.strip()
        if name:
            seen.setdefault(name, None)
    return tuple(seen)


@dataclass
class User:
    """A registered account."""

    id: str
    email: str
    password_hash: str
    roles: Tuple[str, ...] = DEFAULT_ROLES
    extra_permissions: Tuple[Permission, ...] = ()
    mfa_enabled: bool = False
    mfa_secret: Optional[str] = None
    recovery_codes: Optional[List[str]] = None
    failed_login_attempts: int = 0
    locked_until: int = 0  # epoch ms, 0 when unlocked
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_locked(self, at: Optional[datetime] = None) -> bool:
        """Locked while ``locked_until`` lies in the future."""
        if self.locked_until <= 0:
            return False
        return to_epoch_ms(at or utcnow()) < self.locked_until

    @property
    def mfa_pending(self) -> bool:
        """Secret generated by setup but not yet verified."""
        return self.mfa_secret is not None and not self.mfa_enabled

    def touch(self, when: Optional[datetime] = None) -> None:
        self.updated_at = when or utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "email": self.email,
            "passwordHash": self.password_hash,
            "roles": list(self.roles),
            "extraPermissions": [p.value for p in self.extra_permissions],
            "mfaEnabled": self.mfa_enabled,
            "mfaSecret": self.mfa_secret,
            "recoveryCodes": self.recovery_codes,
            "failedLoginAttempts": self.failed_login_attempts,
            "lockedUntil": self.locked_until,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "User":
        """
        Rebuild a user from a stored record.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        for key in ("id", "email", "passwordHash"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"User record missing {key}")
        roles = data.get("roles")
        if not isinstance(roles, list):
            raise ValueError("User record missing roles")

        codes = data.get("recoveryCodes")
        return cls(
            id=data["id"],
            email=normalize_email(data["email"]),
            password_hash=data["passwordHash"],
            roles=normalize_roles(str(r) for r in roles),
            extra_permissions=normalize_permissions(data.get("extraPermissions") or []),
            mfa_enabled=bool(data.get("mfaEnabled", False)),
            mfa_secret=data.get("mfaSecret") or None,
            recovery_codes=list(codes) if isinstance(codes, list) else None,
            failed_login_attempts=int(data.get("failedLoginAttempts") or 0),
            locked_until=int(data.get("lockedUntil") or 0),
            created_at=parse_timestamp(data["createdAt"]),
            updated_at=parse_timestamp(data["updatedAt"]),
        )


def create_user(
    id: str,
    email: str,
    password_hash: str,
    roles: Optional[Sequence[str]] = None,
    extra_permissions: Sequence[PermissionLike] = (),
    now: Optional[datetime] = None,
) -> User:
    """
    Create a user structurally. The password must already be hashed.

    Args:
        id: Record id
        email: Raw email (normalized here)
        password_hash: Output of the hasher
        roles: Role names, ``("user",)`` when omitted
        extra_permissions: Per-user grants (invalid entries dropped)
        now: Creation time

    Returns:
        New user with zeroed lockout counters and MFA disabled
    """
    created = now or utcnow()
    return User(
        id=id,
        email=normalize_email(email),
        password_hash=password_hash,
        roles=normalize_roles(roles if roles is not None else DEFAULT_ROLES),
        extra_permissions=normalize_permissions(extra_permissions),
        mfa_enabled=False,
        failed_login_attempts=0,
        locked_until=0,
        created_at=created,
        updated_at=created,
    )
