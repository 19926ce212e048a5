"""
Password Handling

bcrypt hashing with a configurable cost factor, plus the password
strength policy applied at registration and password change.
"""

import re
from abc import ABC, abstractmethod
from typing import List

import bcrypt


# bcrypt only uses the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72

_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")
_DIGIT = re.compile(r"[0-9]")
_SYMBOL = re.compile(r"[^\w\s]", re.ASCII)

MIN_PASSWORD_LENGTH = 8


class Hasher(ABC):
    """Password hashing contract."""

    @abstractmethod
    def hash(self, plaintext: str) -> str:
        """Hash a password with a fresh salt."""

    @abstractmethod
    def verify(self, plaintext: str, hashed: str) -> bool:
        """Check a password against a stored hash."""

    @abstractmethod
    def needs_rehash(self, hashed: str) -> bool:
        """True when the hash was produced under a weaker policy."""


class BcryptHasher(Hasher):
    """bcrypt with a fixed cost factor (log2 rounds)."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    @staticmethod
    def _encode(plaintext: str) -> bytes:
        return plaintext.encode()[:BCRYPT_MAX_BYTES]

    def hash(self, plaintext: str) -> str:
        return bcrypt.hashpw(
            self._encode(plaintext), bcrypt.gensalt(rounds=self.rounds)
        ).decode()

    def verify(self, plaintext: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(self._encode(plaintext), hashed.encode())
        except ValueError:
            # Not a bcrypt hash
            return False

    def needs_rehash(self, hashed: str) -> bool:
        """Compare the cost embedded in ``$2b$<cost>$...`` with the policy."""
        try:
            cost = int(hashed.split("$")[2])
        except (IndexError, ValueError):
            return True
        return cost < self.rounds


def password_strength_errors(password: str) -> List[str]:
    """
    Check a password against the strength policy.

    Every rule is mandatory: minimum length, a lowercase letter, an
    uppercase letter, a digit and a symbol.

    Returns:
        Human-readable list of failed rules, empty when the password passes
    """
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Must be at least {MIN_PASSWORD_LENGTH} characters")
    if not _LOWER.search(password):
        errors.append("Must include a lowercase letter")
    if not _UPPER.search(password):
        errors.append("Must include an uppercase letter")
    if not _DIGIT.search(password):
        errors.append("Must include a digit")
    if not _SYMBOL.search(password):
        errors.append("Must include a symbol (e.g. !@#$%)")
    return errors


def is_strong_password(password: str) -> bool:
    return not password_strength_errors(password)
