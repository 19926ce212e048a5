"""
Authentication Service

Registration, login with lockout and MFA gate, logout, MFA enrollment and
session-based authorization. Ties the user and session records, the
hasher, the OTP provider, the role catalog and the audit sink together.

Account states are derived, not stored:

- Unlocked / Locked: locked while ``locked_until`` is in the future,
  after ``MAX_FAILED_LOGIN_ATTEMPTS`` consecutive failed password or MFA
  attempts. An expired lock unlocks by itself.
- MFA: disabled (no secret), pending (secret, not enabled), enabled.

Sessions are active until they expire or are revoked; both end states are
terminal and reported as ``SESSION_INACTIVE``.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import uuid4

from sentinel_auth.access.audit import (
    AuditActor,
    AuditFact,
    AuditSink,
    AuditStatus,
    JsonlAuditSink,
    LoggingAuditSink,
    hash_ip,
)
from sentinel_auth.access.permissions import PermissionLike
from sentinel_auth.access.rbac import assert_all, assert_any
from sentinel_auth.access.roles import Role, preset_roles
from sentinel_auth.auth.passwords import BcryptHasher, Hasher, password_strength_errors
from sentinel_auth.auth.schemas import LoginResult, MfaSetupResult, PublicSession, PublicUser
from sentinel_auth.auth.totp import OtpProvider, TotpProvider
from sentinel_auth.config import Settings, get_settings
from sentinel_auth.domain.session import Session, create_session
from sentinel_auth.domain.timestamps import to_epoch_ms, utcnow
from sentinel_auth.domain.user import User, create_user, is_valid_email, normalize_email
from sentinel_auth.exceptions import (
    AccountLockedError,
    AuthError,
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
from sentinel_auth.storage.file_store import JsonlRecordStore
from sentinel_auth.storage.roles import RoleRepository
from sentinel_auth.storage.sessions import SessionRepository
from sentinel_auth.storage.users import UserRepository


logger = logging.getLogger("SENTINEL_AuthService")


class AuthService:
    """Authentication service with lockout, sessions and TOTP MFA."""

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionRepository,
        roles: Optional[RoleRepository] = None,
        hasher: Optional[Hasher] = None,
        otp: Optional[OtpProvider] = None,
        audit: Optional[AuditSink] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.settings = settings or get_settings()
        self.users = users
        self.sessions = sessions
        self.roles = roles
        self.hasher = hasher or BcryptHasher(rounds=self.settings.HASH_ROUNDS)
        self.otp = otp or TotpProvider(
            digits=self.settings.TOTP_DIGITS,
            interval=self.settings.TOTP_INTERVAL_SEC,
            valid_window=self.settings.TOTP_VALID_WINDOW,
        )
        self.audit = audit or LoggingAuditSink(
            verbosity=self.settings.AUDIT_VERBOSITY,
            ip_salt=self.settings.AUDIT_IP_SALT,
        )
        self.clock = clock
        self.id_factory = id_factory

    # ==================== Registration ====================

    async def register(
        self,
        email: str,
        password: str,
        roles: Optional[Sequence[str]] = None,
        extra_permissions: Optional[Sequence[PermissionLike]] = None,
    ) -> PublicUser:
        """
        Register a new user.

        Args:
            email: Email address (normalized to lowercase, trimmed)
            password: Plain text password, checked against the strength policy
            roles: Role names, ``["user"]`` when omitted
            extra_permissions: Per-user grants; unknown permissions are dropped

        Returns:
            Public view of the created user

        Raises:
            InvalidEmailError: Malformed email
            WeakPasswordError: Password fails a strength rule
            EmailTakenError: Email already registered
        """
        normalized = normalize_email(email)
        try:
            if not is_valid_email(normalized):
                raise InvalidEmailError()

            errors = password_strength_errors(password)
            if errors:
                raise WeakPasswordError(errors)

            if await self.users.get_by_email(normalized):
                raise EmailTakenError()

            user = create_user(
                id=self.id_factory(),
                email=normalized,
                password_hash=self.hasher.hash(password),
                roles=roles,
                extra_permissions=extra_permissions or (),
                now=self.clock(),
            )
            await self.users.add(user)
        except AuthError as e:
            await self._emit(AuditFact(
                action="user.register",
                resource="user",
                status=AuditStatus.FAIL,
                actor=AuditActor(email=normalized),
                reason=e.code,
            ))
            raise

        logger.info(f"User registered: {user.id}")
        await self._emit(AuditFact(
            action="user.register",
            resource="user",
            status=AuditStatus.SUCCESS,
            actor=AuditActor(user_id=user.id, email=user.email),
            target_id=user.id,
            meta={"roles": list(user.roles)},
        ))
        return PublicUser.from_user(user, await self._role_catalog())

    # ==================== Login / Logout ====================

    async def login(
        self,
        email: str,
        password: str,
        otp_code: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate with email/password (and TOTP code when MFA is on).

        A locked account is rejected before the password is checked. A
        wrong password or MFA code counts as a failed attempt.

        Args:
            email: User's email
            password: Plain text password
            otp_code: Current TOTP code, required when MFA is enabled
            ttl_minutes: Session lifetime, ``SESSION_TTL_MINUTES`` by default
            ip: Client address, stored only as a salted hash
            user_agent: Client description

        Returns:
            Public user and the new session

        Raises:
            UserNotFoundError, AccountLockedError, InvalidCredentialsError,
            MfaRequiredError, MfaInvalidError
        """
        normalized = normalize_email(email)
        try:
            user, session = await self._authenticate(
                normalized, password, otp_code, ttl_minutes, ip, user_agent
            )
        except AuthError as e:
            await self._emit(AuditFact(
                action="auth.login",
                resource="auth",
                status=AuditStatus.FAIL,
                actor=AuditActor(email=normalized),
                reason=e.code,
                ip=ip,
                user_agent=user_agent,
            ))
            raise

        logger.info(f"Login succeeded for user {user.id}, session {session.id}")
        await self._emit(AuditFact(
            action="auth.login",
            resource="auth",
            status=AuditStatus.SUCCESS,
            actor=AuditActor(user_id=user.id, email=user.email),
            target_id=user.id,
            session_id=session.id,
            meta={"method": "password+mfa" if user.mfa_enabled else "password"},
            ip=ip,
            user_agent=user_agent,
        ))
        return LoginResult(
            user=PublicUser.from_user(user, await self._role_catalog()),
            session=PublicSession.from_session(session, self.clock()),
        )

    async def _authenticate(
        self,
        email: str,
        password: str,
        otp_code: Optional[str],
        ttl_minutes: Optional[int],
        ip: Optional[str],
        user_agent: Optional[str],
    ) -> Tuple[User, Session]:
        user = await self.users.get_by_email(email)
        if user is None:
            raise UserNotFoundError()

        now = self.clock()
        if user.is_locked(now):
            raise AccountLockedError()

        if not self.hasher.verify(password, user.password_hash):
            await self._record_failed_attempt(user, now)
            raise InvalidCredentialsError()

        if self.hasher.needs_rehash(user.password_hash):
            await self._rehash(user, password, now)

        if user.mfa_enabled:
            if not otp_code:
                raise MfaRequiredError()
            if not user.mfa_secret or not self.otp.verify(otp_code, user.mfa_secret):
                await self._record_failed_attempt(user, now)
                raise MfaInvalidError()

        user.failed_login_attempts = 0
        user.locked_until = 0
        user.touch(now)
        await self.users.update(user)

        session = create_session(
            id=self.id_factory(),
            user_id=user.id,
            ttl_minutes=ttl_minutes if ttl_minutes is not None else self.settings.SESSION_TTL_MINUTES,
            now=now,
            ip_hash=hash_ip(ip, self.settings.AUDIT_IP_SALT),
            user_agent=user_agent,
        )
        await self.sessions.add(session)
        return user, session

    async def _record_failed_attempt(self, user: User, now: datetime) -> None:
        """
        Count a failed password or MFA attempt and lock at the threshold.

        Persisting is best-effort: a store failure is logged and the
        caller's authentication error is what gets raised.
        """
        if user.locked_until and not user.is_locked(now):
            # Previous lock expired, start a fresh count
            user.failed_login_attempts = 0
            user.locked_until = 0

        user.failed_login_attempts += 1
        if user.failed_login_attempts >= self.settings.MAX_FAILED_LOGIN_ATTEMPTS:
            until = now + timedelta(minutes=self.settings.LOCKOUT_MINUTES)
            user.locked_until = to_epoch_ms(until)
            logger.warning(
                f"Account {user.id} locked until {until.isoformat()} after "
                f"{user.failed_login_attempts} failed attempts"
            )
        else:
            logger.warning(
                f"Failed login attempt {user.failed_login_attempts} for user {user.id}"
            )
        user.touch(now)

        try:
            await self.users.update(user)
        except (StoreError, AuthError) as e:
            logger.error(f"Could not record failed attempt for user {user.id}: {e}")

    async def _rehash(self, user: User, password: str, now: datetime) -> None:
        """Upgrade a hash made under an older cost policy."""
        user.password_hash = self.hasher.hash(password)
        user.touch(now)
        try:
            await self.users.update(user)
            logger.info(f"Password hash upgraded for user {user.id}")
        except StoreError as e:
            logger.error(f"Could not persist rehash for user {user.id}: {e}")

    async def logout(self, session_id: str) -> PublicSession:
        """
        Revoke an active session.

        Raises:
            SessionNotFoundError: Unknown session id
            SessionInactiveError: Session already revoked or expired
        """
        try:
            session = await self._get_active_session(session_id)
            now = self.clock()
            session.revoke(now)
            await self.sessions.update(session)
        except AuthError as e:
            await self._emit(AuditFact(
                action="auth.logout",
                resource="session",
                status=AuditStatus.FAIL,
                target_id=session_id,
                session_id=session_id,
                reason=e.code,
            ))
            raise

        logger.info(f"Session revoked: {session.id}")
        await self._emit(AuditFact(
            action="auth.logout",
            resource="session",
            status=AuditStatus.SUCCESS,
            actor=AuditActor(user_id=session.user_id),
            target_id=session.id,
            session_id=session.id,
        ))
        return PublicSession.from_session(session, now)

    # ==================== MFA ====================

    async def mfa_setup(self, user_id: str, issuer: Optional[str] = None) -> MfaSetupResult:
        """
        Generate a TOTP secret and provisioning URI for a user.

        MFA stays disabled until ``mfa_verify`` succeeds. Running setup
        again replaces any pending secret.

        Raises:
            UserNotFoundError: Unknown user id
        """
        user = await self._require_user(user_id, "mfa.setup")

        secret = self.otp.generate_secret()
        uri = self.otp.provisioning_uri(user.email, issuer or self.settings.MFA_ISSUER, secret)

        user.mfa_secret = secret
        user.mfa_enabled = False
        user.touch(self.clock())
        await self.users.update(user)

        await self._emit(AuditFact(
            action="mfa.setup",
            resource="mfa",
            status=AuditStatus.SUCCESS,
            actor=AuditActor(user_id=user.id, email=user.email),
            target_id=user.id,
        ))
        return MfaSetupResult(secret=secret, provisioning_uri=uri)

    async def mfa_verify(self, user_id: str, code: str) -> bool:
        """
        Verify a TOTP code against the pending secret and enable MFA.

        Returns:
            True if the code was valid; False is a normal outcome

        Raises:
            UserNotFoundError: Unknown user id
            MfaNotEnabledError: Setup has not been run
        """
        user = await self._require_user(user_id, "mfa.verify")
        if not user.mfa_secret:
            await self._emit(AuditFact(
                action="mfa.verify",
                resource="mfa",
                status=AuditStatus.FAIL,
                target_id=user_id,
                reason=MfaNotEnabledError.error_code.value,
            ))
            raise MfaNotEnabledError()

        valid = self.otp.verify(code, user.mfa_secret)
        if valid and not user.mfa_enabled:
            user.mfa_enabled = True
            user.touch(self.clock())
            await self.users.update(user)
            logger.info(f"MFA enabled for user {user.id}")

        await self._emit(AuditFact(
            action="mfa.verify",
            resource="mfa",
            status=AuditStatus.SUCCESS if valid else AuditStatus.FAIL,
            actor=AuditActor(user_id=user.id, email=user.email),
            target_id=user.id,
            reason=None if valid else "INVALID_CODE",
        ))
        return valid

    # ==================== Sessions & Authorization ====================

    async def validate_session(
        self, session_id: str, touch: bool = True
    ) -> Tuple[PublicUser, PublicSession]:
        """
        Resolve an active session to its user.

        Args:
            session_id: Session to check
            touch: Record activity on the session

        Raises:
            SessionNotFoundError, SessionInactiveError, UserNotFoundError
        """
        user, session = await self._session_user(session_id, touch)
        return (
            PublicUser.from_user(user, await self._role_catalog()),
            PublicSession.from_session(session, self.clock()),
        )

    async def authorize(
        self,
        session_id: str,
        required: Sequence[PermissionLike],
        require_all: bool = True,
    ) -> PublicUser:
        """
        Check that the session's user holds the required permissions.

        Raises:
            SessionNotFoundError, SessionInactiveError, UserNotFoundError
            PermissionDeniedError: Carries the missing permissions
        """
        user, session = await self._session_user(session_id, touch=True)
        catalog = await self._role_catalog()
        try:
            if require_all:
                assert_all(user, required, catalog)
            else:
                assert_any(user, required, catalog)
        except PermissionDeniedError as e:
            logger.warning(f"Permission denied for user {user.id}: {e.missing}")
            await self._emit(AuditFact(
                action="rbac.authorize",
                resource="role",
                status=AuditStatus.FAIL,
                actor=AuditActor(user_id=user.id, email=user.email),
                session_id=session.id,
                reason=e.code,
                meta={"missing": e.missing},
            ))
            raise
        return PublicUser.from_user(user, catalog)

    async def list_active_sessions(self, user_id: str) -> List[PublicSession]:
        now = self.clock()
        return [
            PublicSession.from_session(s, now)
            for s in await self.sessions.list_active_by_user(user_id, now)
        ]

    async def invalidate_sessions(self, user_id: str) -> int:
        """
        Revoke every active session of a user.

        Returns:
            Number of sessions revoked
        """
        now = self.clock()
        active = await self.sessions.list_active_by_user(user_id, now)
        for session in active:
            session.revoke(now)
            await self.sessions.update(session)

        await self._emit(AuditFact(
            action="session.invalidate",
            resource="session",
            status=AuditStatus.SUCCESS,
            target_id=user_id,
            meta={"count": len(active)},
        ))
        return len(active)

    # ==================== Account ====================

    async def get_user(self, user_id: str) -> PublicUser:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return PublicUser.from_user(user, await self._role_catalog())

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> None:
        """
        Change a user's password.

        Raises:
            UserNotFoundError: Unknown user id
            InvalidCredentialsError: Current password is wrong
            WeakPasswordError: New password fails a strength rule
        """
        user = await self._require_user(user_id, "user.password.change")
        try:
            if not self.hasher.verify(current_password, user.password_hash):
                raise InvalidCredentialsError()
            errors = password_strength_errors(new_password)
            if errors:
                raise WeakPasswordError(errors)
        except AuthError as e:
            await self._emit(AuditFact(
                action="user.password.change",
                resource="user",
                status=AuditStatus.FAIL,
                actor=AuditActor(user_id=user.id, email=user.email),
                target_id=user.id,
                reason=e.code,
            ))
            raise

        user.password_hash = self.hasher.hash(new_password)
        user.touch(self.clock())
        await self.users.update(user)
        await self._emit(AuditFact(
            action="user.password.change",
            resource="user",
            status=AuditStatus.SUCCESS,
            actor=AuditActor(user_id=user.id, email=user.email),
            target_id=user.id,
        ))

    async def list_roles(self) -> List[Role]:
        """Role catalog, or the built-in presets when no catalog is configured."""
        if self.roles is None:
            return preset_roles()
        return await self.roles.list_roles()

    # ==================== Helpers ====================

    async def _role_catalog(self) -> Optional[List[Role]]:
        if self.roles is None:
            return None
        return await self.roles.list_roles()

    async def _require_user(self, user_id: str, action: str) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            await self._emit(AuditFact(
                action=action,
                resource=action.split(".", 1)[0],
                status=AuditStatus.FAIL,
                target_id=user_id,
                reason=UserNotFoundError.error_code.value,
            ))
            raise UserNotFoundError()
        return user

    async def _get_active_session(self, session_id: str) -> Session:
        session = await self.sessions.get_by_id(session_id)
        if session is None:
            raise SessionNotFoundError()
        if not session.is_active(self.clock()):
            raise SessionInactiveError()
        return session

    async def _session_user(self, session_id: str, touch: bool) -> Tuple[User, Session]:
        session = await self._get_active_session(session_id)
        user = await self.users.get_by_id(session.user_id)
        if user is None:
            raise UserNotFoundError()
        if touch:
            session.touch(self.clock())
            await self.sessions.update(session)
        return user, session

    async def _emit(self, fact: AuditFact) -> None:
        """Send a fact to the audit sink. Sink failures never fail the operation."""
        try:
            await self.audit.emit(fact)
        except Exception as e:
            logger.warning(f"Audit sink failed for {fact.action}: {e}")


def build_auth_service(settings: Optional[Settings] = None) -> AuthService:
    """Wire an AuthService with file-backed stores under ``DATA_DIR``."""
    settings = settings or get_settings()
    data_dir = Path(settings.DATA_DIR)

    users = UserRepository(JsonlRecordStore(
        data_dir / settings.USERS_FILE, User, unique_fields=("email",), collection="user",
    ))
    sessions = SessionRepository(JsonlRecordStore(
        data_dir / settings.SESSIONS_FILE, Session, collection="session",
    ))
    roles = RoleRepository(JsonlRecordStore(
        data_dir / settings.ROLES_FILE, Role, collection="role",
    ))
    audit = JsonlAuditSink(
        settings.AUDIT_LOG_PATH,
        verbosity=settings.AUDIT_VERBOSITY,
        ip_salt=settings.AUDIT_IP_SALT,
    )
    return AuthService(
        users=users,
        sessions=sessions,
        roles=roles,
        audit=audit,
        settings=settings,
    )
