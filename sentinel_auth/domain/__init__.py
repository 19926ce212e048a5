"""User and session entities."""

from sentinel_auth.domain.session import Session, create_session
from sentinel_auth.domain.user import User, create_user

__all__ = ["Session", "User", "create_session", "create_user"]
