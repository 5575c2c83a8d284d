# Overview: Unguessable token id generation.

"""
Token Identity Service

WHY: A QR token is a bearer credential; anyone holding the id can redeem it.
Ids must be unguessable, so they come only from the OS CSPRNG.

GUARANTEES:
- 16 bytes (128 bits) of entropy, lowercase hex (32 chars)
- Collision probability for realistic batches is far below 2^-60
- No fallback: if the OS source fails, issuance fails
"""

from __future__ import annotations

import secrets

from .errors import DuplicateTokenId, EntropySourceUnavailable


TOKEN_BYTES = 16  # 128 bits
TOKEN_HEX_LENGTH = TOKEN_BYTES * 2


def generate_token_id() -> str:
    """
    Generate one token id.

    WHY secrets.token_hex: Backed by os.urandom.
    DO NOT use random.random() or uuid1() for bearer tokens!
    """
    try:
        return secrets.token_hex(TOKEN_BYTES)
    except (OSError, NotImplementedError) as exc:
        raise EntropySourceUnavailable("Secure random source unavailable") from exc


def generate_token_ids(count: int) -> list[str]:
    """
    Generate `count` ids for one batch.

    A repeat inside the batch is checked, not assumed impossible.
    """
    ids = [generate_token_id() for _ in range(count)]
    if len(set(ids)) != len(ids):
        raise DuplicateTokenId("Generated batch contains a repeated token id")
    return ids


def normalize_token_id(value: str) -> str:
    """Normalize a presented id: strip whitespace, lowercase."""
    return (value or "").strip().lower()
