# Overview: Durable token records; the only write path after issuance is compare_and_transition.

"""
Token Store

WHY: Redemption must have at most one winner per token even when the same
code is scanned from several devices at once and the service runs as several
processes. A read-check-write in Python cannot guarantee that, and neither can
an in-process lock. The database can: every mutation is a single

    UPDATE reward_tokens SET ... WHERE token = :id AND status = :expected

and the caller wins only if exactly one row matched.

SNAPSHOTS: Reads return frozen TokenSnapshot values built from one row of one
SELECT, so a caller never sees a half-applied redemption. Aggregates are each
one SQL statement; across statements they are only eventually consistent with
redemptions committing concurrently.

The session is injected by the caller; the store keeps no global handle.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..models import RewardToken, STATUS_REDEEMED, STATUS_UNREDEEMED
from ..time_utils import to_utc_z
from .concurrency import run_with_retry
from .errors import DuplicateTokenId


# Fields a transition may write; everything else is immutable after issuance
MUTABLE_FIELDS = frozenset({"status", "amount_cents", "redeemed_at", "customer_phone"})

ALLOWED_TRANSITIONS = frozenset({(STATUS_UNREDEEMED, STATUS_REDEEMED)})

# Keep IN (...) lists under SQLite's bound-parameter limit
_IN_CHUNK = 500


@dataclass(frozen=True)
class TokenSnapshot:
    token: str
    product_name: str
    batch_id: str
    amount_cents: int
    status: str
    redeemed_at: datetime | None
    expiry_date: datetime | None
    created_at: datetime
    customer_phone: str | None = None

    @classmethod
    def from_model(cls, row: RewardToken) -> "TokenSnapshot":
        return cls(
            token=row.token,
            product_name=row.product_name,
            batch_id=row.batch_id,
            amount_cents=row.amount_cents,
            status=row.status,
            redeemed_at=row.redeemed_at,
            expiry_date=row.expiry_date,
            created_at=row.created_at,
            customer_phone=row.customer_phone,
        )

    def is_expired(self, now: datetime) -> bool:
        """Expired only strictly after expiry_date; no expiry_date never expires."""
        return self.expiry_date is not None and now > self.expiry_date

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("redeemed_at", "expiry_date", "created_at"):
            data[key] = to_utc_z(data[key])
        return data


@dataclass(frozen=True)
class NewToken:
    token: str
    product_name: str
    batch_id: str
    created_at: datetime
    expiry_date: datetime | None = None


@dataclass(frozen=True)
class TokenSummary:
    total: int
    redeemed: int
    amount_paid_cents: int

    @property
    def remaining(self) -> int:
        return self.total - self.redeemed


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class TokenStore:
    def __init__(self, session, *, retry_attempts: int = 3, retry_backoff: float = 0.1):
        self.session = session
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    def _run(self, func):
        return run_with_retry(
            func, self.session, attempts=self.retry_attempts, backoff_base=self.retry_backoff
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_batch(self, tokens: Sequence[NewToken]) -> int:
        """
        Persist a batch of new UNREDEEMED tokens, all or nothing.

        Raises DuplicateTokenId if any id repeats inside the batch, already
        exists, or collides at commit with a concurrent insert.

        A commit whose acknowledgement is lost is retried; if the retry finds
        this exact batch already stored, the earlier commit landed and the
        insert counts as done.
        """
        ids = [t.token for t in tokens]
        if len(set(ids)) != len(ids):
            repeated = sorted(i for i, n in Counter(ids).items() if n > 1)
            raise DuplicateTokenId("Batch contains repeated token ids", repeated)

        batch_ids = {t.token: t.batch_id for t in tokens}
        commit_attempted = False

        def _op():
            nonlocal commit_attempted
            existing: dict[str, str] = {}
            for chunk in _chunks(ids, _IN_CHUNK):
                existing.update(
                    self.session.query(RewardToken.token, RewardToken.batch_id)
                    .filter(RewardToken.token.in_(chunk))
                    .all()
                )
            if existing:
                self.session.rollback()
                if commit_attempted and existing == batch_ids:
                    return len(tokens)
                raise DuplicateTokenId("Token id already exists", sorted(existing))

            self.session.add_all([
                RewardToken(
                    token=t.token,
                    product_name=t.product_name,
                    batch_id=t.batch_id,
                    amount_cents=0,
                    status=STATUS_UNREDEEMED,
                    expiry_date=t.expiry_date,
                    created_at=t.created_at,
                )
                for t in tokens
            ])
            commit_attempted = True
            try:
                self.session.commit()
            except IntegrityError as exc:
                self.session.rollback()
                raise DuplicateTokenId("Token id collided on insert") from exc
            return len(tokens)

        return self._run(_op)

    def compare_and_transition(self, token_id: str, expected_status: str, new_fields: dict) -> bool:
        """
        Apply new_fields iff the stored status still equals expected_status.

        Returns True when exactly one row was updated and committed, False on
        conflict (unknown id or status already moved on). A conflict leaves
        the row untouched.
        """
        unknown = set(new_fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Immutable token fields: {', '.join(sorted(unknown))}")

        new_status = new_fields.get("status", expected_status)
        if new_status != expected_status and (expected_status, new_status) not in ALLOWED_TRANSITIONS:
            raise ValueError(f"Transition {expected_status} -> {new_status} is not allowed")
        if new_status == STATUS_REDEEMED and new_status != expected_status and not new_fields.get("redeemed_at"):
            raise ValueError("redeemed_at is required when redeeming")

        values = dict(new_fields)
        values["version_id"] = RewardToken.version_id + 1

        def _op():
            matched = (
                self.session.query(RewardToken)
                .filter(
                    RewardToken.token == token_id,
                    RewardToken.status == expected_status,
                )
                .update(values, synchronize_session=False)
            )
            if matched != 1:
                self.session.rollback()
                return False
            self.session.commit()
            return True

        return self._run(_op)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, token_id: str) -> TokenSnapshot | None:
        def _op():
            row = (
                self.session.query(RewardToken)
                .filter(RewardToken.token == token_id)
                .populate_existing()
                .first()
            )
            return TokenSnapshot.from_model(row) if row else None

        return self._run(_op)

    def list_by_batch(self, batch_id: str) -> list[TokenSnapshot]:
        def _op():
            rows = (
                self.session.query(RewardToken)
                .filter(RewardToken.batch_id == batch_id)
                .populate_existing()
                .order_by(RewardToken.id)
                .all()
            )
            return [TokenSnapshot.from_model(row) for row in rows]

        return self._run(_op)

    def count_by_state(self, status: str) -> int:
        def _op():
            return int(
                self.session.query(func.count(RewardToken.id))
                .filter(RewardToken.status == status)
                .scalar() or 0
            )

        return self._run(_op)

    def sum_amount_where(self, *criteria) -> int:
        """Sum amount_cents over rows matching SQLAlchemy filter criteria."""
        def _op():
            return int(
                self.session.query(func.coalesce(func.sum(RewardToken.amount_cents), 0))
                .filter(*criteria)
                .scalar() or 0
            )

        return self._run(_op)

    def group_count_by_product(self) -> dict[str, dict[str, int]]:
        """Map product_name -> {"total", "redeemed"} in one statement."""
        redeemed_flag = case((RewardToken.status == STATUS_REDEEMED, 1), else_=0)

        def _op():
            rows = (
                self.session.query(
                    RewardToken.product_name,
                    func.count(RewardToken.id).label("total"),
                    func.coalesce(func.sum(redeemed_flag), 0).label("redeemed"),
                )
                .group_by(RewardToken.product_name)
                .all()
            )
            return {
                row.product_name: {"total": int(row.total or 0), "redeemed": int(row.redeemed or 0)}
                for row in rows
            }

        return self._run(_op)

    def summary(self, *criteria) -> TokenSummary:
        """Total, redeemed and paid out, read together in one statement."""
        is_redeemed = RewardToken.status == STATUS_REDEEMED

        def _op():
            row = (
                self.session.query(
                    func.count(RewardToken.id).label("total"),
                    func.coalesce(func.sum(case((is_redeemed, 1), else_=0)), 0).label("redeemed"),
                    func.coalesce(
                        func.sum(case((is_redeemed, RewardToken.amount_cents), else_=0)), 0
                    ).label("paid"),
                )
                .filter(*criteria)
                .one()
            )
            return TokenSummary(
                total=int(row.total or 0),
                redeemed=int(row.redeemed or 0),
                amount_paid_cents=int(row.paid or 0),
            )

        return self._run(_op)
