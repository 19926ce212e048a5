"""
Tests for the Authentication Service
====================================

End-to-end flows over in-memory stores: registration, login with
lockout, the MFA gate, sessions, authorization and audit facts.
"""

from datetime import timedelta

import pytest

from sentinel_auth.access.audit import AuditStatus, MemoryAuditSink
from sentinel_auth.access.permissions import Permission
from sentinel_auth.access.roles import ROLE_PRESETS
from sentinel_auth.auth.passwords import BcryptHasher
from sentinel_auth.auth.service import AuthService, build_auth_service
from sentinel_auth.config import Settings
from sentinel_auth.domain.user import User
from sentinel_auth.exceptions import (
    AccountLockedError,
    AuthErrorCode,
    EmailTakenError,
    InvalidCredentialsError,
    InvalidEmailError,
    MfaInvalidError,
    MfaNotEnabledError,
    MfaRequiredError,
    PermissionDeniedError,
    SessionInactiveError,
    SessionNotFoundError,
    StoreError,
    UserNotFoundError,
    WeakPasswordError,
)
from sentinel_auth.storage.memory import MemoryRecordStore
from sentinel_auth.storage.users import UserRepository

STRONG_PASSWORD = "S3gura!2024"


def wrong_code(code: str) -> str:
    """A code of the same length that differs from ``code``."""
    return f"{(int(code) + 500_000) % 10 ** len(code):0{len(code)}d}"


class FailingUpdateStore(MemoryRecordStore):
    """Memory store whose updates fail once ``broken`` is set."""

    broken = False

    async def update_by_id(self, record):
        if self.broken:
            raise StoreError("disk full")
        await super().update_by_id(record)


class BrokenAuditSink(MemoryAuditSink):
    async def emit(self, fact):
        raise RuntimeError("audit backend down")


async def enable_mfa(service, totp, user_id):
    setup = await service.mfa_setup(user_id)
    assert await service.mfa_verify(user_id, totp.generate(setup.secret))
    return setup.secret


class TestRegister:
    """Tests for user registration."""

    @pytest.mark.asyncio
    async def test_register_defaults(self, service, user_repo):
        public = await service.register("  Bob@Example.COM ", STRONG_PASSWORD)
        assert public.email == "bob@example.com"
        assert public.roles == ["user"]
        assert "auth:login" in public.permissions
        assert public.mfa_enabled is False
        assert not hasattr(public, "password_hash")

        stored = await user_repo.get_by_id(public.id)
        assert stored.password_hash != STRONG_PASSWORD

    @pytest.mark.asyncio
    async def test_invalid_email(self, service):
        with pytest.raises(InvalidEmailError):
            await service.register("not-an-email", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_weak_password_lists_failures(self, service):
        with pytest.raises(WeakPasswordError) as exc:
            await service.register("bob@example.com", "short")
        assert exc.value.kind is AuthErrorCode.WEAK_PASSWORD
        assert len(exc.value.errors) >= 2
        assert exc.value.details["errors"] == exc.value.errors

    @pytest.mark.asyncio
    async def test_email_taken_case_insensitive(self, service, alice):
        with pytest.raises(EmailTakenError):
            await service.register("ALICE@example.com", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_extra_permissions(self, service):
        public = await service.register(
            "carol@example.com", STRONG_PASSWORD, extra_permissions=["audit:read", "bogus"]
        )
        assert "audit:read" in public.permissions
        assert "bogus" not in public.permissions

    @pytest.mark.asyncio
    async def test_custom_role_from_catalog(self, service, role_repo):
        await role_repo.upsert("auditor", ["audit:read"])
        public = await service.register("dave@example.com", STRONG_PASSWORD, roles=["auditor"])
        assert public.permissions == ["audit:read"]

    @pytest.mark.asyncio
    async def test_audit_facts(self, service, audit_sink, alice):
        with pytest.raises(EmailTakenError):
            await service.register("alice@example.com", STRONG_PASSWORD)
        ok, failed = audit_sink.facts
        assert (ok.action, ok.status) == ("user.register", AuditStatus.SUCCESS)
        assert (failed.status, failed.reason) == (AuditStatus.FAIL, "EMAIL_TAKEN")


class TestLogin:
    """Tests for password login and sessions."""

    @pytest.mark.asyncio
    async def test_default_ttl(self, service, alice, clock):
        result = await service.login("alice@example.com", STRONG_PASSWORD)
        assert result.user.id == alice.id
        assert result.session.is_active
        assert result.session.issued_at == clock()
        assert result.session.expires_at - result.session.issued_at == timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_custom_ttl(self, service, alice):
        result = await service.login("alice@example.com", STRONG_PASSWORD, ttl_minutes=5)
        assert result.session.expires_at - result.session.issued_at == timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_unknown_user(self, service):
        with pytest.raises(UserNotFoundError):
            await service.login("ghost@example.com", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_wrong_password_counts(self, service, alice, user_repo):
        with pytest.raises(InvalidCredentialsError):
            await service.login("alice@example.com", "Wr0ng!pass")
        assert (await user_repo.get_by_id(alice.id)).failed_login_attempts == 1

    @pytest.mark.asyncio
    async def test_success_resets_counter(self, service, alice, user_repo):
        for _ in range(3):
            with pytest.raises(InvalidCredentialsError):
                await service.login("alice@example.com", "Wr0ng!pass")
        await service.login("alice@example.com", STRONG_PASSWORD)
        user = await user_repo.get_by_id(alice.id)
        assert user.failed_login_attempts == 0
        assert user.locked_until == 0

    @pytest.mark.asyncio
    async def test_ip_is_hashed(self, service, alice, session_repo, audit_sink):
        result = await service.login(
            "alice@example.com", STRONG_PASSWORD, ip="203.0.113.9", user_agent="cli/1.0"
        )
        session = await session_repo.get_by_id(result.session.id)
        assert session.ip_hash and session.ip_hash != "203.0.113.9"
        assert session.user_agent == "cli/1.0"
        assert audit_sink.facts[-1].meta == {"method": "password"}

    @pytest.mark.asyncio
    async def test_failed_login_fact(self, service, alice, audit_sink):
        with pytest.raises(InvalidCredentialsError):
            await service.login("alice@example.com", "Wr0ng!pass")
        fact = audit_sink.facts[-1]
        assert fact.action == "auth.login"
        assert fact.status is AuditStatus.FAIL
        assert fact.reason == "INVALID_CREDENTIALS"
        assert "Wr0ng!pass" not in repr(fact)

    @pytest.mark.asyncio
    async def test_rehash_on_policy_change(self, alice, user_repo, session_repo, clock):
        stronger = Settings(HASH_ROUNDS=5)
        service = AuthService(
            users=user_repo,
            sessions=session_repo,
            hasher=BcryptHasher(rounds=5),
            audit=MemoryAuditSink(),
            settings=stronger,
            clock=clock,
        )
        await service.login("alice@example.com", STRONG_PASSWORD)
        stored = await user_repo.get_by_id(alice.id)
        assert stored.password_hash.split("$")[2] == "05"
        await service.login("alice@example.com", STRONG_PASSWORD)


class TestLockout:
    """Tests for account lockout after repeated failures."""

    @pytest.mark.asyncio
    async def test_locks_after_threshold(self, service, alice, user_repo):
        for _ in range(5):
            with pytest.raises(InvalidCredentialsError):
                await service.login("alice@example.com", "Wr0ng!pass")

        with pytest.raises(AccountLockedError):
            await service.login("alice@example.com", STRONG_PASSWORD)

        user = await user_repo.get_by_id(alice.id)
        assert user.failed_login_attempts == 5
        assert user.is_locked()

    @pytest.mark.asyncio
    async def test_locked_attempts_do_not_count(self, service, alice, user_repo):
        for _ in range(5):
            with pytest.raises(InvalidCredentialsError):
                await service.login("alice@example.com", "Wr0ng!pass")
        for _ in range(3):
            with pytest.raises(AccountLockedError):
                await service.login("alice@example.com", "Wr0ng!pass")
        assert (await user_repo.get_by_id(alice.id)).failed_login_attempts == 5

    @pytest.mark.asyncio
    async def test_lock_expires(self, service, alice, user_repo, clock):
        for _ in range(5):
            with pytest.raises(InvalidCredentialsError):
                await service.login("alice@example.com", "Wr0ng!pass")

        clock.advance(minutes=15)
        await service.login("alice@example.com", STRONG_PASSWORD)
        assert (await user_repo.get_by_id(alice.id)).failed_login_attempts == 0

    @pytest.mark.asyncio
    async def test_expired_lock_restarts_count(self, service, alice, user_repo, clock):
        for _ in range(5):
            with pytest.raises(InvalidCredentialsError):
                await service.login("alice@example.com", "Wr0ng!pass")

        clock.advance(minutes=16)
        with pytest.raises(InvalidCredentialsError):
            await service.login("alice@example.com", "Wr0ng!pass")

        user = await user_repo.get_by_id(alice.id)
        assert user.failed_login_attempts == 1
        assert not user.is_locked(clock())

    @pytest.mark.asyncio
    async def test_store_failure_keeps_auth_error(self, session_repo, hasher, settings, clock):
        store = FailingUpdateStore(User, unique_fields=("email",), collection="user")
        service = AuthService(
            users=UserRepository(store),
            sessions=session_repo,
            hasher=hasher,
            audit=MemoryAuditSink(),
            settings=settings,
            clock=clock,
        )
        await service.register("erin@example.com", STRONG_PASSWORD)
        store.broken = True

        with pytest.raises(InvalidCredentialsError):
            await service.login("erin@example.com", "Wr0ng!pass")


class TestMfa:
    """Tests for MFA enrollment and the login gate."""

    @pytest.mark.asyncio
    async def test_setup_is_pending_until_verified(self, service, alice, user_repo):
        setup = await service.mfa_setup(alice.id)
        assert setup.provisioning_uri.startswith("otpauth://totp/SentinelTest:alice@example.com?")
        assert f"secret={setup.secret}" in setup.provisioning_uri

        user = await user_repo.get_by_id(alice.id)
        assert user.mfa_secret == setup.secret
        assert user.mfa_enabled is False
        assert user.mfa_pending

        # Pending MFA does not gate login
        await service.login("alice@example.com", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_verify_wrong_code(self, service, alice, totp):
        setup = await service.mfa_setup(alice.id)
        assert not await service.mfa_verify(alice.id, wrong_code(totp.generate(setup.secret)))
        assert not (await service.get_user(alice.id)).mfa_enabled

    @pytest.mark.asyncio
    async def test_verify_before_setup(self, service, alice):
        with pytest.raises(MfaNotEnabledError):
            await service.mfa_verify(alice.id, "123456")

    @pytest.mark.asyncio
    async def test_unknown_user(self, service, audit_sink):
        with pytest.raises(UserNotFoundError):
            await service.mfa_setup("nobody")
        assert audit_sink.facts[-1].action == "mfa.setup"
        assert audit_sink.facts[-1].status is AuditStatus.FAIL

    @pytest.mark.asyncio
    async def test_login_gate(self, service, alice, totp):
        secret = await enable_mfa(service, totp, alice.id)

        with pytest.raises(MfaRequiredError):
            await service.login("alice@example.com", STRONG_PASSWORD)

        code = totp.generate(secret)
        with pytest.raises(MfaInvalidError):
            await service.login("alice@example.com", STRONG_PASSWORD, otp_code=wrong_code(code))

        result = await service.login("alice@example.com", STRONG_PASSWORD, otp_code=code)
        assert result.user.mfa_enabled

    @pytest.mark.asyncio
    async def test_missing_code_does_not_count(self, service, alice, totp, user_repo):
        await enable_mfa(service, totp, alice.id)
        for _ in range(6):
            with pytest.raises(MfaRequiredError):
                await service.login("alice@example.com", STRONG_PASSWORD)
        assert (await user_repo.get_by_id(alice.id)).failed_login_attempts == 0

    @pytest.mark.asyncio
    async def test_mixed_failures_lock(self, service, alice, totp):
        secret = await enable_mfa(service, totp, alice.id)
        for _ in range(3):
            with pytest.raises(InvalidCredentialsError):
                await service.login("alice@example.com", "Wr0ng!pass")

        bad = wrong_code(totp.generate(secret))
        for _ in range(2):
            with pytest.raises(MfaInvalidError):
                await service.login("alice@example.com", STRONG_PASSWORD, otp_code=bad)

        with pytest.raises(AccountLockedError):
            await service.login("alice@example.com", STRONG_PASSWORD, otp_code=totp.generate(secret))

    @pytest.mark.asyncio
    async def test_resetup_disables_until_verified(self, service, alice, totp):
        await enable_mfa(service, totp, alice.id)
        await service.mfa_setup(alice.id)
        assert not (await service.get_user(alice.id)).mfa_enabled


class TestSessions:
    """Tests for logout, validation and invalidation."""

    @pytest.mark.asyncio
    async def test_logout_then_logout_again(self, service, alice):
        result = await service.login("alice@example.com", STRONG_PASSWORD)
        revoked = await service.logout(result.session.id)
        assert revoked.revoked_at is not None
        assert not revoked.is_active

        with pytest.raises(SessionInactiveError):
            await service.logout(result.session.id)

    @pytest.mark.asyncio
    async def test_logout_unknown(self, service):
        with pytest.raises(SessionNotFoundError):
            await service.logout("no-such-session")

    @pytest.mark.asyncio
    async def test_expired_session_is_inactive(self, service, alice, clock):
        result = await service.login("alice@example.com", STRONG_PASSWORD)
        clock.advance(minutes=60)
        with pytest.raises(SessionInactiveError):
            await service.validate_session(result.session.id)
        with pytest.raises(SessionInactiveError):
            await service.logout(result.session.id)

    @pytest.mark.asyncio
    async def test_validate_touches(self, service, alice, clock):
        result = await service.login("alice@example.com", STRONG_PASSWORD)
        clock.advance(minutes=5)
        user, session = await service.validate_session(result.session.id)
        assert user.id == alice.id
        assert session.last_used_at == clock()

        clock.advance(minutes=5)
        _, session = await service.validate_session(result.session.id, touch=False)
        assert session.last_used_at == clock() - timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_invalidate_sessions(self, service, alice):
        first = await service.login("alice@example.com", STRONG_PASSWORD)
        await service.login("alice@example.com", STRONG_PASSWORD)
        assert len(await service.list_active_sessions(alice.id)) == 2

        assert await service.invalidate_sessions(alice.id) == 2
        assert await service.list_active_sessions(alice.id) == []
        assert await service.invalidate_sessions(alice.id) == 0
        with pytest.raises(SessionInactiveError):
            await service.validate_session(first.session.id)


class TestAuthorize:
    """Tests for session-based permission checks."""

    @pytest.mark.asyncio
    async def test_allowed(self, service, alice):
        result = await service.login("alice@example.com", STRONG_PASSWORD)
        user = await service.authorize(result.session.id, ["user:read", "mfa:setup"])
        assert user.id == alice.id

    @pytest.mark.asyncio
    async def test_denied_reports_missing(self, service, alice, audit_sink):
        result = await service.login("alice@example.com", STRONG_PASSWORD)
        with pytest.raises(PermissionDeniedError) as exc:
            await service.authorize(result.session.id, ["user:read", Permission.AUDIT_READ])
        assert exc.value.missing == ["audit:read"]

        fact = audit_sink.facts[-1]
        assert fact.action == "rbac.authorize"
        assert fact.meta == {"missing": ["audit:read"]}

    @pytest.mark.asyncio
    async def test_any_of(self, service, alice):
        result = await service.login("alice@example.com", STRONG_PASSWORD)
        await service.authorize(result.session.id, ["audit:read", "user:read"], require_all=False)
        with pytest.raises(PermissionDeniedError):
            await service.authorize(result.session.id, ["audit:read", "role:assign"], require_all=False)

    @pytest.mark.asyncio
    async def test_catalog_grant_applies(self, service, role_repo):
        await role_repo.upsert("auditor", ["audit:read"])
        await service.register("audra@example.com", STRONG_PASSWORD, roles=["auditor", "user"])
        result = await service.login("audra@example.com", STRONG_PASSWORD)
        await service.authorize(result.session.id, ["audit:read", "auth:logout"])


class TestAccount:
    """Tests for account maintenance operations."""

    @pytest.mark.asyncio
    async def test_get_user(self, service, alice):
        assert (await service.get_user(alice.id)).email == "alice@example.com"
        with pytest.raises(UserNotFoundError):
            await service.get_user("missing")

    @pytest.mark.asyncio
    async def test_change_password(self, service, alice, user_repo):
        with pytest.raises(InvalidCredentialsError):
            await service.change_password(alice.id, "Wr0ng!pass", "N3w!Passw0rd")
        with pytest.raises(WeakPasswordError):
            await service.change_password(alice.id, STRONG_PASSWORD, "weak")
        assert (await user_repo.get_by_id(alice.id)).failed_login_attempts == 0

        await service.change_password(alice.id, STRONG_PASSWORD, "N3w!Passw0rd")
        await service.login("alice@example.com", "N3w!Passw0rd")
        with pytest.raises(InvalidCredentialsError):
            await service.login("alice@example.com", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_list_roles_without_catalog(self, user_repo, session_repo, hasher, settings):
        service = AuthService(
            users=user_repo, sessions=session_repo, hasher=hasher,
            audit=MemoryAuditSink(), settings=settings,
        )
        assert [r.name for r in await service.list_roles()] == list(ROLE_PRESETS)

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_operation(self, user_repo, session_repo, hasher, settings):
        service = AuthService(
            users=user_repo, sessions=session_repo, hasher=hasher,
            audit=BrokenAuditSink(), settings=settings,
        )
        public = await service.register("frank@example.com", STRONG_PASSWORD)
        assert public.email == "frank@example.com"


class TestBuildAuthService:
    """Tests for the file-backed wiring."""

    @pytest.mark.asyncio
    async def test_end_to_end_on_disk(self, tmp_path):
        settings = Settings(
            DATA_DIR=str(tmp_path / "data"),
            AUDIT_LOG_PATH=str(tmp_path / "logs" / "audit.log"),
            HASH_ROUNDS=4,
        )
        service = build_auth_service(settings)
        await service.roles.seed_presets_if_empty()

        user = await service.register("grace@example.com", STRONG_PASSWORD, roles=["support"])
        result = await service.login("grace@example.com", STRONG_PASSWORD, ip="10.1.1.1")
        await service.logout(result.session.id)

        assert (tmp_path / "data" / "users.txt").exists()
        assert (tmp_path / "data" / "sessions.txt").exists()
        assert "user:list" in user.permissions

        records = await service.audit.read(user_id=user.id)
        assert [r.action for r in records] == ["auth.logout", "auth.login", "user.register"]
        assert all("10.1.1.1" not in r.to_json() for r in records)
