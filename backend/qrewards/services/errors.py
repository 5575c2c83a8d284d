# Overview: Typed outcomes raised by the token services; routes map `code` to a status.

from __future__ import annotations


class RewardTokenError(Exception):
    """Base class for every typed outcome of the token services."""
    code = "ERROR"


class TokenNotFoundError(RewardTokenError):
    """Unknown token id. Terminal."""
    code = "NOT_FOUND"


class TokenExpiredError(RewardTokenError):
    """Token is past its expiry date. Terminal."""
    code = "EXPIRED"


class TokenAlreadyUsedError(RewardTokenError):
    """Token was already redeemed, or this attempt lost the race. Terminal."""
    code = "ALREADY_USED"


class DuplicateTokenId(RewardTokenError):
    """Issuance produced an id that already exists. Integrity anomaly."""
    code = "DUPLICATE_ID"

    def __init__(self, message: str, token_ids: list[str] | None = None):
        super().__init__(message)
        self.token_ids = token_ids or []


class UnauthorizedError(RewardTokenError):
    """Missing or wrong admin credential. Never says which."""
    code = "UNAUTHORIZED"


class StoreUnavailableError(RewardTokenError):
    """Store unreachable or timed out. Safe to retry with backoff."""
    code = "TRANSIENT"


class EntropySourceUnavailable(RewardTokenError):
    """The OS secure random source could not be read. Fatal to issuance."""
    code = "ENTROPY_UNAVAILABLE"
