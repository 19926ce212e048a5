"""
SENTINEL AUTH Test Configuration
=================================

Pytest fixtures for the auth engine tests: a controllable clock,
in-memory stores, a low-cost bcrypt hasher and a recording audit sink.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from sentinel_auth.access.audit import MemoryAuditSink
from sentinel_auth.access.roles import Role
from sentinel_auth.auth.passwords import BcryptHasher
from sentinel_auth.auth.service import AuthService
from sentinel_auth.auth.totp import TotpProvider
from sentinel_auth.config import Settings
from sentinel_auth.domain.session import Session
from sentinel_auth.domain.user import User
from sentinel_auth.storage.memory import MemoryRecordStore
from sentinel_auth.storage.roles import RoleRepository
from sentinel_auth.storage.sessions import SessionRepository
from sentinel_auth.storage.users import UserRepository


STRONG_PASSWORD = "S3gura!2024"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def timestamp(self) -> float:
        return self.current.timestamp()

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock starting at a fixed instant."""
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    """Default policy with the cheapest bcrypt cost."""
    return Settings(HASH_ROUNDS=4, MFA_ISSUER="SentinelTest")


@pytest.fixture
def hasher(settings):
    return BcryptHasher(rounds=settings.HASH_ROUNDS)


@pytest.fixture
def totp(clock):
    """TOTP provider driven by the fake clock."""
    return TotpProvider(clock=clock.timestamp)


@pytest.fixture
def audit_sink():
    return MemoryAuditSink()


@pytest.fixture
def user_repo():
    return UserRepository(
        MemoryRecordStore(User, unique_fields=("email",), collection="user")
    )


@pytest.fixture
def session_repo():
    return SessionRepository(MemoryRecordStore(Session, collection="session"))


@pytest.fixture
def role_repo():
    return RoleRepository(MemoryRecordStore(Role, collection="role"))


@pytest.fixture
def service(user_repo, session_repo, role_repo, hasher, totp, audit_sink, settings, clock):
    """Auth service over in-memory stores."""
    return AuthService(
        users=user_repo,
        sessions=session_repo,
        roles=role_repo,
        hasher=hasher,
        otp=totp,
        audit=audit_sink,
        settings=settings,
        clock=clock,
    )


@pytest_asyncio.fixture
async def alice(service):
    """A registered user with the default role."""
    return await service.register("alice@example.com", STRONG_PASSWORD, roles=["user"])
