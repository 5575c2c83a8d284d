# backend/qrewards/routes/redeem.py
"""
Public redemption routes

SECURITY: No credential. Possession of the token id is the credential.
The reward amount is decided server-side; clients cannot supply it.

GET /redeem/<token> is the URL printed in the QR code. Scanner apps and
link previewers fetch it on their own, so it only reports whether the token
can be redeemed. Redemption is POST /api/redeem/<token>.
"""

from flask import Blueprint, jsonify, current_app

from ..decorators import error_response
from ..services.components import redemption_engine
from ..services.errors import RewardTokenError


redeem_bp = Blueprint("redeem", __name__)


@redeem_bp.get("/redeem/<token_id>")
def redeem_landing(token_id: str):
    """
    Token state for the scan landing page.

    200 {"token", "state", "redeemable", "expiry_date"}; 404 NOT_FOUND;
    503 TRANSIENT.
    """
    try:
        response = jsonify(redemption_engine().lookup(token_id))
        response.headers["Cache-Control"] = "no-store"
        return response, 200

    except RewardTokenError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to look up token")
        return jsonify({"error": "Internal server error"}), 500


@redeem_bp.post("/api/redeem/<token_id>")
def redeem_route(token_id: str):
    """
    Redeem a token.

    200 {"amount"}; 404 NOT_FOUND; 410 EXPIRED; 409 ALREADY_USED;
    503 TRANSIENT (safe to retry).
    """
    try:
        result = redemption_engine().redeem(token_id)
        return jsonify({
            "amount": result.amount_cents,
            "redeemed_at": result.to_dict()["redeemed_at"],
        }), 200

    except RewardTokenError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to redeem token")
        return jsonify({"error": "Internal server error"}), 500
