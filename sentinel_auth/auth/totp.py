"""
TOTP Provider

Time-based one-time passwords (RFC 6238, HMAC-SHA1) compatible with
common authenticator apps.
"""

import base64
import hashlib
import hmac
import logging
import secrets
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional
from urllib.parse import quote, urlencode


logger = logging.getLogger("SENTINEL_Totp")


class OtpProvider(ABC):
    """One-time password contract."""

    @abstractmethod
    def generate_secret(self) -> str:
        """Create a new shared secret."""

    @abstractmethod
    def provisioning_uri(self, account_label: str, issuer: str, secret: str) -> str:
        """URI for QR-code enrollment."""

    @abstractmethod
    def verify(self, code: str, secret: str) -> bool:
        """Check a code against a secret."""


class TotpProvider(OtpProvider):
    """
    RFC 6238 TOTP.

    Args:
        digits: Code length
        interval: Time step in seconds
        valid_window: Adjacent steps accepted on each side for clock skew
        clock: Returns the current Unix time
    """

    SECRET_BYTES = 20

    def __init__(
        self,
        digits: int = 6,
        interval: int = 30,
        valid_window: int = 1,
        clock: Callable[[], float] = time.time,
    ):
        self.digits = digits
        self.interval = interval
        self.valid_window = valid_window
        self.clock = clock

    def generate_secret(self) -> str:
        raw = secrets.token_bytes(self.SECRET_BYTES)
        return base64.b32encode(raw).decode("ascii").rstrip("=")

    def provisioning_uri(self, account_label: str, issuer: str, secret: str) -> str:
        label = quote(f"{issuer}:{account_label}", safe="@:")
        query = urlencode({
            "secret": secret,
            "issuer": issuer,
            "algorithm": "SHA1",
            "digits": self.digits,
            "period": self.interval,
        })
        return f"otpauth://totp/{label}?{query}"

    def generate(self, secret: str, at: Optional[float] = None) -> str:
        """Code for the time step containing ``at`` (now by default)."""
        timestamp = self.clock() if at is None else at
        return self._code_for_counter(secret, int(timestamp // self.interval))

    def verify(self, code: str, secret: str) -> bool:
        code = (code or "").strip()
        if len(code) != self.digits or not code.isdigit():
            return False
        counter = int(self.clock() // self.interval)
        for offset in range(-self.valid_window, self.valid_window + 1):
            expected = self._code_for_counter(secret, counter + offset)
            if expected and hmac.compare_digest(expected, code):
                return True
        return False

    def _code_for_counter(self, secret: str, counter: int) -> str:
        key = _decode_secret(secret)
        if key is None:
            logger.warning("Invalid TOTP secret")
            return ""
        digest = hmac.new(key, counter.to_bytes(8, "big"), hashlib.sha1).digest()
        offset = digest[-1] & 0x0F
        value = (int.from_bytes(digest[offset:offset + 4], "big") & 0x7FFFFFFF) % (10 ** self.digits)
        return str(value).zfill(self.digits)


def _decode_secret(secret: str) -> Optional[bytes]:
    cleaned = secret.replace(" ", "").upper()
    padded = cleaned + "=" * ((8 - len(cleaned) % 8) % 8)
    try:
        return base64.b32decode(padded, casefold=True)
    except (ValueError, TypeError):
        return None
