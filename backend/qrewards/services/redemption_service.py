# Overview: Redemption state machine; UNREDEEMED -> REDEEMED exactly once, before expiry.

"""
Redemption Engine

STATE MACHINE: UNREDEEMED -> REDEEMED is the only transition. REDEEMED is
terminal.

ORDER OF CHECKS (per attempt):
1. Unknown id              -> TokenNotFoundError
2. now > expiry_date       -> TokenExpiredError (even if already redeemed)
3. status == REDEEMED      -> TokenAlreadyUsedError
4. conditional transition  -> TokenAlreadyUsedError if another attempt won

Step 3 only avoids a pointless write. Step 4 is what makes concurrent
attempts safe: the winner is decided by the store's conditional UPDATE, never
by the snapshot read in step 1.

Redemption is public (no credential). The reward amount comes from a
pluggable RewardPolicy and is recorded only by the winning attempt.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping, Sequence

from ..models import STATUS_REDEEMED, STATUS_UNREDEEMED
from ..time_utils import to_utc_z, utcnow
from .errors import TokenAlreadyUsedError, TokenExpiredError, TokenNotFoundError
from .identity_service import normalize_token_id
from .token_store import TokenSnapshot, TokenStore


DEFAULT_REWARD_CENTS = 100

# Reported by lookup(); never stored
STATE_EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class RedemptionResult:
    token_id: str
    amount_cents: int
    redeemed_at: datetime

    def to_dict(self) -> dict:
        return {
            "token": self.token_id,
            "amount": self.amount_cents,
            "redeemed_at": to_utc_z(self.redeemed_at),
        }


# =============================================================================
# REWARD POLICIES
# =============================================================================

RewardPolicy = Callable[[TokenSnapshot], int]


class FixedReward:
    """Same amount for every token."""

    def __init__(self, amount_cents: int = DEFAULT_REWARD_CENTS):
        if amount_cents < 0:
            raise ValueError("amount_cents must be >= 0")
        self.amount_cents = amount_cents

    def __call__(self, token: TokenSnapshot) -> int:
        return self.amount_cents


class BatchTieredReward:
    """Amount looked up by batch_id, with a default for unlisted batches."""

    def __init__(self, tiers: Mapping[str, int], default_cents: int = DEFAULT_REWARD_CENTS):
        if any(v < 0 for v in tiers.values()) or default_cents < 0:
            raise ValueError("reward amounts must be >= 0")
        self.tiers = dict(tiers)
        self.default_cents = default_cents

    def __call__(self, token: TokenSnapshot) -> int:
        return self.tiers.get(token.batch_id, self.default_cents)


class RandomReward:
    """
    Amount drawn uniformly from `choices`.

    Uses SystemRandom so a redeemer cannot predict the next draw.
    """

    def __init__(self, choices: Sequence[int], rng=None):
        if not choices:
            raise ValueError("choices must not be empty")
        if any(c < 0 for c in choices):
            raise ValueError("reward amounts must be >= 0")
        self.choices = list(choices)
        self.rng = rng or secrets.SystemRandom()

    def __call__(self, token: TokenSnapshot) -> int:
        return self.rng.choice(self.choices)


def _parse_int_list(raw: str) -> list[int]:
    return [int(part) for part in raw.split(",") if part.strip()]


def _parse_tiers(raw: str) -> dict[str, int]:
    tiers: dict[str, int] = {}
    for part in raw.split(","):
        if not part.strip():
            continue
        batch_id, sep, amount = part.partition("=")
        if not sep:
            raise ValueError(f"Invalid reward tier '{part}', expected BATCH=cents")
        tiers[batch_id.strip()] = int(amount)
    return tiers


def build_reward_policy(config: Mapping) -> RewardPolicy:
    """Build the reward policy named by REWARD_POLICY from app config."""
    name = (config.get("REWARD_POLICY") or "fixed").lower()
    amount = int(config.get("REWARD_AMOUNT_CENTS", DEFAULT_REWARD_CENTS))

    if name == "fixed":
        return FixedReward(amount)
    if name == "tiered":
        return BatchTieredReward(_parse_tiers(config.get("REWARD_TIERS") or ""), amount)
    if name == "random":
        return RandomReward(_parse_int_list(config.get("REWARD_CHOICES") or ""))
    raise ValueError(f"Unknown REWARD_POLICY '{name}' (expected fixed, tiered or random)")


# =============================================================================
# ENGINE
# =============================================================================

class RedemptionEngine:
    def __init__(
        self,
        store: TokenStore,
        reward_policy: RewardPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.reward_policy = reward_policy or FixedReward()
        self.clock = clock

    def lookup(self, token_id: str) -> dict:
        """
        Report whether a token can be redeemed, without changing it.

        Served at the URL printed in the QR code. Never redeems.
        """
        token_id = normalize_token_id(token_id)
        token = self.store.find_by_id(token_id) if token_id else None
        if token is None:
            raise TokenNotFoundError("Invalid QR")

        if token.is_expired(self.clock()):
            state = STATE_EXPIRED
        else:
            state = token.status
        return {
            "token": token_id,
            "state": state,
            "redeemable": state == STATUS_UNREDEEMED,
            "expiry_date": to_utc_z(token.expiry_date),
        }

    def redeem(self, token_id: str, reward_amount: int | None = None) -> RedemptionResult:
        """
        Redeem a token once.

        reward_amount overrides the policy for this attempt only.

        Raises TokenNotFoundError, TokenExpiredError, TokenAlreadyUsedError,
        or StoreUnavailableError (transient; safe to retry).
        """
        token_id = normalize_token_id(token_id)
        token = self.store.find_by_id(token_id) if token_id else None
        if token is None:
            raise TokenNotFoundError("Invalid QR")

        now = self.clock()

        # Expiry wins over already-used
        if token.is_expired(now):
            raise TokenExpiredError("QR expired")

        if token.status == STATUS_REDEEMED:
            raise TokenAlreadyUsedError("QR already used")

        amount = self.reward_policy(token) if reward_amount is None else reward_amount
        if amount < 0:
            raise ValueError("reward amount must be >= 0")

        # redeemed_at >= created_at even with clock skew between hosts
        redeemed_at = max(now, token.created_at)

        won = self.store.compare_and_transition(
            token_id,
            STATUS_UNREDEEMED,
            {
                "status": STATUS_REDEEMED,
                "amount_cents": amount,
                "redeemed_at": redeemed_at,
            },
        )
        if not won:
            raise TokenAlreadyUsedError("QR already used")

        return RedemptionResult(token_id=token_id, amount_cents=amount, redeemed_at=redeemed_at)
