# Overview: Read-only dashboard and per-product statistics over the token store.

from __future__ import annotations

from ..models import RewardToken
from .token_store import TokenStore


class AggregationReporter:
    """
    Pure read projections over the token store.

    dashboard_stats() reads its numbers from a single statement, so they agree
    with each other. Two separate calls may straddle redemptions committing in
    between; callers must not treat the dashboard as one global instant.
    """

    def __init__(self, store: TokenStore):
        self.store = store

    def dashboard_stats(self, batch_id: str | None = None) -> dict:
        criteria = [RewardToken.batch_id == batch_id] if batch_id else []
        summary = self.store.summary(*criteria)
        return {
            "total_issued": summary.total,
            "redeemed_count": summary.redeemed,
            "remaining_count": summary.remaining,
            "total_reward_paid": summary.amount_paid_cents,
        }

    def product_stats(self) -> list[dict]:
        grouped = self.store.group_count_by_product()
        return [
            {
                "product_name": product_name,
                "total": counts["total"],
                "redeemed": counts["redeemed"],
            }
            for product_name, counts in sorted(grouped.items())
        ]
