"""Authentication module."""

from sentinel_auth.auth.service import AuthService, build_auth_service
from sentinel_auth.auth.passwords import BcryptHasher, Hasher
from sentinel_auth.auth.totp import OtpProvider, TotpProvider

__all__ = [
    "AuthService",
    "build_auth_service",
    "BcryptHasher",
    "Hasher",
    "OtpProvider",
    "TotpProvider",
]
