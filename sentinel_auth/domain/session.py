"""
Session Entity

Bounded-lifetime authorization token issued after a successful login.
Revocation is terminal: a revoked session never becomes active again.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from sentinel_auth.domain.timestamps import parse_timestamp, utcnow


@dataclass
class Session:
    """A login session."""

    id: str
    user_id: str
    issued_at: datetime
    expires_at: datetime
    last_used_at: datetime
    revoked_at: Optional[datetime] = None
    ip_hash: Optional[str] = None
    user_agent: Optional[str] = None

    def is_expired(self, at: Optional[datetime] = None) -> bool:
        return self.expires_at <= (at or utcnow())

    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_active(self, at: Optional[datetime] = None) -> bool:
        """Not revoked and not yet expired."""
        return not self.is_revoked() and not self.is_expired(at)

    def touch(self, when: Optional[datetime] = None) -> None:
        """Record activity on the session."""
        self.last_used_at = when or utcnow()

    def revoke(self, when: Optional[datetime] = None) -> None:
        """Revoke the session. The first revocation time is kept."""
        if self.revoked_at is None:
            self.revoked_at = when or utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "issuedAt": self.issued_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "lastUsedAt": self.last_used_at.isoformat(),
            "revokedAt": self.revoked_at.isoformat() if self.revoked_at else None,
            "ipHash": self.ip_hash,
            "userAgent": self.user_agent,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Session":
        """
        Rebuild a session from a stored record.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data.get("id"), str) or not isinstance(data.get("userId"), str):
            raise ValueError("Session record missing id or userId")
        issued = parse_timestamp(data.get("issuedAt"))
        revoked = data.get("revokedAt")
        ip_hash = data.get("ipHash")
        user_agent = data.get("userAgent")
        return cls(
            id=data["id"],
            user_id=data["userId"],
            issued_at=issued,
            expires_at=parse_timestamp(data.get("expiresAt")),
            last_used_at=parse_timestamp(data["lastUsedAt"]) if data.get("lastUsedAt") else issued,
            revoked_at=parse_timestamp(revoked) if revoked else None,
            ip_hash=ip_hash if isinstance(ip_hash, str) else None,
            user_agent=user_agent if isinstance(user_agent, str) else None,
        )


def create_session(
    id: str,
    user_id: str,
    ttl_minutes: int = 60,
    now: Optional[datetime] = None,
    ip_hash: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Session:
    """
    Create a new session valid for ``ttl_minutes``.

    Raises:
        ValueError: If the TTL is not positive
    """
    if ttl_minutes <= 0:
        raise ValueError("Session TTL must be positive")
    issued = now or utcnow()
    return Session(
        id=id,
        user_id=user_id,
        issued_at=issued,
        expires_at=issued + timedelta(minutes=ttl_minutes),
        last_used_at=issued,
        ip_hash=ip_hash,
        user_agent=user_agent,
    )
