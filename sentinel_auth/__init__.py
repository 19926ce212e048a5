"""
SENTINEL AUTH

Local authentication and authorization engine: credential management,
session issuance and revocation, role-based permission evaluation and
optional TOTP multi-factor authentication, backed by flat JSON-lines
record files.
"""

__version__ = "1.0.0"
