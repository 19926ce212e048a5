"""
SENTINEL AUTH Configuration

Environment-based settings for the auth engine. The auth service takes a
Settings instance at construction; nothing below the service reads the
environment.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "SENTINEL AUTH"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Sessions
    SESSION_TTL_MINUTES: int = 60

    # Lockout policy
    MAX_FAILED_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 15

    # Password hashing (bcrypt cost factor)
    HASH_ROUNDS: int = 10

    # MFA / TOTP
    MFA_ISSUER: str = "SentinelAuth"
    TOTP_DIGITS: int = 6
    TOTP_INTERVAL_SEC: int = 30
    TOTP_VALID_WINDOW: int = 1

    # Storage
    DATA_DIR: str = "data"
    USERS_FILE: str = "users.txt"
    SESSIONS_FILE: str = "sessions.txt"
    ROLES_FILE: str = "roles.txt"

    # Audit
    AUDIT_LOG_PATH: str = "logs/audit.log"
    AUDIT_VERBOSITY: Literal["minimal", "normal", "verbose"] = "normal"
    AUDIT_IP_SALT: str = "change-me-ip-salt"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for embedding applications."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
