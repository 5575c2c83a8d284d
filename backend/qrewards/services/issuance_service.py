# Overview: Batch issuance and export of QR reward tokens.

"""
Issuance Service

WHY: Tokens are printed in bulk for a product run. A batch is all or nothing:
either every generated id is stored UNREDEEMED, or none are.

INTEGRITY: A duplicate id should never happen with 128-bit ids. If it does it
is treated as an anomaly: logged at ERROR, recorded as a DUPLICATE_TOKEN_ID
security event, and the batch fails.

EXPORT: list_batch_tokens() returns each token with the public URL to print
in its QR code. Rendering the image is left to an external tool.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from flask import current_app

from ..models import RewardToken
from ..time_utils import utcnow
from ..validation import ISSUE_BATCH_POLICY, enforce_rules_issue_batch, validate_payload
from .errors import DuplicateTokenId
from .identity_service import generate_token_ids
from .security_service import log_security_event
from .token_store import NewToken, TokenStore


def issue_batch(
    store: TokenStore,
    *,
    product_name: str,
    batch_id: str,
    count: int,
    expiry_date: datetime | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> list[str]:
    """
    Generate and persist `count` new tokens. Returns their ids in order.

    Raises EntropySourceUnavailable, DuplicateTokenId, StoreUnavailableError.
    """
    now = clock()

    try:
        token_ids = generate_token_ids(count)
        store.insert_batch([
            NewToken(
                token=token_id,
                product_name=product_name,
                batch_id=batch_id,
                created_at=now,
                expiry_date=expiry_date,
            )
            for token_id in token_ids
        ])
    except DuplicateTokenId as exc:
        current_app.logger.error(
            "Integrity anomaly: duplicate token id while issuing batch %s (%s)", batch_id, exc
        )
        log_security_event(
            event_type="DUPLICATE_TOKEN_ID",
            success=False,
            action="ISSUE_BATCH",
            resource=batch_id,
            reason=f"{exc} ({len(exc.token_ids)} colliding ids)",
        )
        raise

    current_app.logger.info(
        "Issued %d tokens for product %r batch %r", len(token_ids), product_name, batch_id
    )
    return token_ids


def issue_batch_from_payload(store: TokenStore, payload: dict, *, max_batch_size: int) -> dict:
    """Validate an issuance request body and issue the batch."""
    patch = validate_payload(model=RewardToken, payload=payload, policy=ISSUE_BATCH_POLICY)
    enforce_rules_issue_batch(patch, max_batch_size=max_batch_size)

    token_ids = issue_batch(
        store,
        product_name=patch["product_name"],
        batch_id=patch["batch_id"],
        count=patch["count"],
        expiry_date=patch.get("expiry_date"),
    )
    return {
        "product_name": patch["product_name"],
        "batch_id": patch["batch_id"],
        "count": len(token_ids),
        "token_ids": token_ids,
    }


def redeem_url(base_url: str, token_id: str) -> str:
    return f"{base_url.rstrip('/')}/redeem/{token_id}"


def list_batch_tokens(store: TokenStore, batch_id: str, *, base_url: str) -> list[dict]:
    """Tokens of a batch with the URL to encode in each QR code."""
    return [
        {
            "token": snapshot.token,
            "redeem_url": redeem_url(base_url, snapshot.token),
            "status": snapshot.status,
            "expiry_date": snapshot.to_dict()["expiry_date"],
        }
        for snapshot in store.list_by_batch(batch_id)
    ]
