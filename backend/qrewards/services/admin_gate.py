# Overview: Constant-time check of the administrative credential.

"""
Admin Gate

WHY: Issuance, export and statistics are administrative; redemption is not.
A single shared admin secret is configured (ADMIN_PASSWORD).

SECURITY NOTES:
- Plaintext secrets are compared with hmac.compare_digest (no early exit)
- A secret starting with "$2" is a bcrypt hash, checked with bcrypt.checkpw
- No secret configured means every request is denied
- Missing and wrong credentials produce the same result
"""

from __future__ import annotations

import hmac

import bcrypt


BCRYPT_PREFIX = "$2"


def hash_admin_secret(secret: str) -> str:
    """Hash an admin secret with bcrypt (cost factor 12) for ADMIN_PASSWORD."""
    if not secret:
        raise ValueError("Admin secret must not be empty")
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")


class AdminGate:
    def __init__(self, secret: str | None):
        self._secret = secret or ""

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def authorize(self, credential: str | None) -> bool:
        if not self._secret or not credential:
            return False

        presented = credential.encode("utf-8")

        if self._secret.startswith(BCRYPT_PREFIX):
            try:
                return bcrypt.checkpw(presented, self._secret.encode("utf-8"))
            except ValueError:
                # Malformed hash in config
                return False

        return hmac.compare_digest(presented, self._secret.encode("utf-8"))
