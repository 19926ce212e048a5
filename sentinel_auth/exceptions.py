"""
SENTINEL AUTH - Centralized Exception Hierarchy
================================================

Provides structured exception types so callers can branch on the kind
of failure without parsing messages.

Exception Categories:
    - AuthError: Registration, login, session and MFA failures
    - PermissionDeniedError: RBAC assertion failures
    - InvalidPermissionError: Rejected permission strings
    - StoreError: Record store I/O and integrity problems
"""

from enum import Enum
from typing import Any, Dict, Optional, Sequence


class SentinelError(Exception):
    """
    Base exception for all Sentinel Auth errors.

    Attributes:
        message: Human-readable error description
        code: Optional error code for programmatic handling
        details: Optional dict with additional context
        recoverable: Whether the whole operation can be retried
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


# =============================================================================
# AUTHENTICATION ERRORS
# =============================================================================


class AuthErrorCode(str, Enum):
    """Kinds of domain failures surfaced by the auth service."""

    INVALID_EMAIL = "INVALID_EMAIL"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    EMAIL_TAKEN = "EMAIL_TAKEN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    MFA_REQUIRED = "MFA_REQUIRED"
    MFA_INVALID = "MFA_INVALID"
    MFA_NOT_ENABLED = "MFA_NOT_ENABLED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_INACTIVE = "SESSION_INACTIVE"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class AuthError(SentinelError):
    """Base exception for auth domain errors. Subclasses fix the code."""

    error_code: AuthErrorCode = AuthErrorCode.INVALID_CREDENTIALS
    default_message: str = "Authentication failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message or self.default_message,
            code=self.error_code.value,
            details=details,
        )

    @property
    def kind(self) -> AuthErrorCode:
        return self.error_code


class InvalidEmailError(AuthError):
    """Email address is malformed."""

    error_code = AuthErrorCode.INVALID_EMAIL
    default_message = "Invalid email address"


class WeakPasswordError(AuthError):
    """Password does not satisfy the strength policy."""

    error_code = AuthErrorCode.WEAK_PASSWORD
    default_message = "Password is too weak"

    def __init__(self, errors: Sequence[str]):
        super().__init__("; ".join(errors), details={"errors": list(errors)})
        self.errors = list(errors)


class EmailTakenError(AuthError):
    """Email is already registered."""

    error_code = AuthErrorCode.EMAIL_TAKEN
    default_message = "Email is already registered"


class UserNotFoundError(AuthError):
    error_code = AuthErrorCode.USER_NOT_FOUND
    default_message = "User not found"


class InvalidCredentialsError(AuthError):
    error_code = AuthErrorCode.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class AccountLockedError(AuthError):
    """Account is temporarily locked after repeated failures."""

    error_code = AuthErrorCode.ACCOUNT_LOCKED
    default_message = "Account temporarily locked after repeated failed attempts"


class MfaRequiredError(AuthError):
    error_code = AuthErrorCode.MFA_REQUIRED
    default_message = "MFA code required"


class MfaInvalidError(AuthError):
    error_code = AuthErrorCode.MFA_INVALID
    default_message = "Invalid MFA code"


class MfaNotEnabledError(AuthError):
    """MFA verification attempted before setup generated a secret."""

    error_code = AuthErrorCode.MFA_NOT_ENABLED
    default_message = "No pending MFA secret, run setup first"


class SessionNotFoundError(AuthError):
    error_code = AuthErrorCode.SESSION_NOT_FOUND
    default_message = "Session not found"


class SessionInactiveError(AuthError):
    """Session exists but is revoked or expired."""

    error_code = AuthErrorCode.SESSION_INACTIVE
    default_message = "Session is no longer active"


class PermissionDeniedError(AuthError):
    """
    RBAC assertion failed.

    Attributes:
        missing: Permissions the user lacks
        required: Permissions that were requested
    """

    error_code = AuthErrorCode.PERMISSION_DENIED
    default_message = "Insufficient permissions"

    def __init__(
        self,
        missing: Sequence[str],
        required: Optional[Sequence[str]] = None,
        message: Optional[str] = None,
    ):
        self.missing = [str(p) for p in missing]
        self.required = [str(p) for p in (required if required is not None else missing)]
        super().__init__(
            message or f"Insufficient permissions. Requires: [{', '.join(self.missing)}]",
            details={"missing": self.missing, "required": self.required},
        )


# =============================================================================
# PERMISSION VALIDATION ERRORS
# =============================================================================


class InvalidPermissionError(SentinelError, ValueError):
    """A string is not a permission known to the catalog."""

    def __init__(self, value: str):
        super().__init__(
            f"Unknown permission: {value!r}",
            code="INVALID_PERMISSION",
            details={"value": value},
        )
        self.value = value


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(SentinelError):
    """Underlying record medium failed (read or write)."""

    recoverable = True

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "STORE_ERROR")
        super().__init__(message, **kwargs)


class RecordNotFoundError(StoreError):
    """Update targeted a record id that does not exist."""

    recoverable = False

    def __init__(self, record_id: str, collection: str = "record"):
        super().__init__(
            f"{collection} not found: {record_id}",
            code="RECORD_NOT_FOUND",
            details={"id": record_id, "collection": collection},
        )
        self.record_id = record_id


class DuplicateRecordError(StoreError):
    """Append violated a uniqueness constraint."""

    recoverable = False

    def __init__(self, field_name: str, value: str, collection: str = "record"):
        super().__init__(
            f"Duplicate {collection} {field_name}: {value}",
            code="DUPLICATE_RECORD",
            details={"field": field_name, "value": value, "collection": collection},
        )
        self.field_name = field_name
        self.value = value
