from __future__ import annotations

from ..extensions import db
from qrewards.time_utils import to_utc_z


STATUS_UNREDEEMED = "UNREDEEMED"
STATUS_REDEEMED = "REDEEMED"


class RewardToken(db.Model):
    """
    One issued QR reward token.

    LIFECYCLE: Created UNREDEEMED in bulk by batch issuance. Moves to
    REDEEMED exactly once, through a conditional UPDATE on status
    (see services/token_store.py). Never moves back, never deleted here.

    The public identifier printed in the QR code is `token`; the integer
    `id` is a storage surrogate and is never exposed to redeemers.
    """
    __tablename__ = "reward_tokens"
    __table_args__ = (
        db.UniqueConstraint("token", name="uq_reward_tokens_token"),
        db.Index("ix_reward_tokens_product_status", "product_name", "status"),
        db.CheckConstraint(
            "status IN ('UNREDEEMED', 'REDEEMED')",
            name="ck_reward_tokens_status",
        ),
        db.CheckConstraint(
            "(status = 'REDEEMED' AND redeemed_at IS NOT NULL) "
            "OR (status = 'UNREDEEMED' AND redeemed_at IS NULL)",
            name="ck_reward_tokens_redeemed_at",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    batch_id = db.Column(db.String(64), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=STATUS_UNREDEEMED, index=True)
    redeemed_at = db.Column(db.DateTime, nullable=True)

    expiry_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False)

    # Reserved for a future customer capture flow
    customer_phone = db.Column(db.String(32), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<RewardToken token={self.token!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "product_name": self.product_name,
            "batch_id": self.batch_id,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "redeemed_at": to_utc_z(self.redeemed_at),
            "expiry_date": to_utc_z(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
            "customer_phone": self.customer_phone,
        }
