# backend/qrewards/routes/admin.py
"""
Admin API routes

SECURITY: Every route requires the admin credential (see require_admin).
- Batch issuance
- Batch export (token ids + redeem URLs for QR rendering)
- Dashboard and per-product statistics
- Security event log
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_admin, error_response
from ..services import issuance_service, security_service
from ..services.components import token_store, reporter
from ..services.errors import RewardTokenError
from ..validation import ValidationError


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/batches")
@require_admin
def issue_batch_route():
    """
    Issue a batch of tokens.

    Body: {"product_name", "batch_id", "count", "expiry_date"?}
    """
    try:
        data = request.get_json(silent=True)
        result = issuance_service.issue_batch_from_payload(
            token_store(),
            data,
            max_batch_size=current_app.config["MAX_BATCH_SIZE"],
        )
        return jsonify(result), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "code": "VALIDATION"}), 400
    except RewardTokenError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue batch")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/batches/<batch_id>/tokens")
@require_admin
def export_batch_route(batch_id: str):
    try:
        tokens = issuance_service.list_batch_tokens(
            token_store(),
            batch_id,
            base_url=current_app.config["PUBLIC_BASE_URL"],
        )
        if not tokens:
            return jsonify({"error": "Batch not found", "code": "NOT_FOUND"}), 404
        return jsonify({"batch_id": batch_id, "count": len(tokens), "tokens": tokens}), 200

    except RewardTokenError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export batch")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/stats")
@require_admin
def dashboard_stats_route():
    try:
        batch_id = request.args.get("batch_id") or None
        return jsonify(reporter().dashboard_stats(batch_id=batch_id)), 200
    except RewardTokenError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load dashboard stats")
        return jsonify({"error": "Dashboard error"}), 500


@admin_bp.get("/product-stats")
@require_admin
def product_stats_route():
    try:
        return jsonify(reporter().product_stats()), 200
    except RewardTokenError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load product stats")
        return jsonify({"error": "Product stats error"}), 500


@admin_bp.get("/security-events")
@require_admin
def security_events_route():
    event_type = request.args.get("event_type") or None
    limit = max(1, min(request.args.get("limit", 100, type=int), 1000))
    events = security_service.list_security_events(event_type=event_type, limit=limit)
    return jsonify([e.to_dict() for e in events]), 200
