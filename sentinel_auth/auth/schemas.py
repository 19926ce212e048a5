"""
Authentication Schemas

Pydantic models for the redacted views returned by the auth service.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel

from sentinel_auth.access.rbac import effective_permissions
from sentinel_auth.access.roles import Role
from sentinel_auth.domain.session import Session
from sentinel_auth.domain.user import User


class PublicUser(BaseModel):
    """User data safe to display: no hash, no MFA secret."""

    id: str
    email: str
    roles: List[str]
    permissions: List[str]
    mfa_enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(
        cls, user: User, role_catalog: Optional[Iterable[Role]] = None
    ) -> "PublicUser":
        return cls(
            id=user.id,
            email=user.email,
            roles=list(user.roles),
            permissions=[p.value for p in effective_permissions(user, role_catalog)],
            mfa_enabled=user.mfa_enabled,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class PublicSession(BaseModel):
    """Session data safe to display."""

    id: str
    user_id: str
    issued_at: datetime
    expires_at: datetime
    last_used_at: datetime
    revoked_at: Optional[datetime] = None
    is_active: bool

    @classmethod
    def from_session(cls, session: Session, at: Optional[datetime] = None) -> "PublicSession":
        return cls(
            id=session.id,
            user_id=session.user_id,
            issued_at=session.issued_at,
            expires_at=session.expires_at,
            last_used_at=session.last_used_at,
            revoked_at=session.revoked_at,
            is_active=session.is_active(at),
        )


class LoginResult(BaseModel):
    """Successful login."""

    user: PublicUser
    session: PublicSession


class MfaSetupResult(BaseModel):
    """Pending MFA enrollment; enabled only after verification."""

    secret: str
    provisioning_uri: str
