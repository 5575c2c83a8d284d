# Overview: Builds the token services for the current app and request.

"""
Each request gets components bound to the request-scoped session. Nothing
here is a module-level singleton; the store handle is passed explicitly into
every component that needs it.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from .admin_gate import AdminGate
from .redemption_service import RedemptionEngine, build_reward_policy
from .reporting_service import AggregationReporter
from .token_store import TokenStore


REWARD_POLICY_KEY = "qrewards.reward_policy"


def init_app(app) -> None:
    """Build the reward policy once at startup so bad config fails fast."""
    app.extensions[REWARD_POLICY_KEY] = build_reward_policy(app.config)


def token_store() -> TokenStore:
    return TokenStore(
        db.session,
        retry_attempts=current_app.config["STORE_RETRY_ATTEMPTS"],
        retry_backoff=current_app.config["STORE_RETRY_BACKOFF"],
    )


def redemption_engine(store: TokenStore | None = None) -> RedemptionEngine:
    return RedemptionEngine(
        store or token_store(),
        reward_policy=current_app.extensions[REWARD_POLICY_KEY],
    )


def reporter(store: TokenStore | None = None) -> AggregationReporter:
    return AggregationReporter(store or token_store())


def admin_gate() -> AdminGate:
    return AdminGate(current_app.config.get("ADMIN_PASSWORD"))
