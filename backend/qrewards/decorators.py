# Overview: Admin gate decorator and error-to-response mapping for API routes.

from functools import wraps
from flask import request, jsonify, current_app
from sqlalchemy.exc import DBAPIError

from .extensions import db
from .services import security_service
from .services.components import admin_gate
from .services.errors import RewardTokenError, UnauthorizedError


ADMIN_HEADER = "X-Admin-Password"

STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "EXPIRED": 410,
    "ALREADY_USED": 409,
    "DUPLICATE_ID": 409,
    "UNAUTHORIZED": 401,
    "TRANSIENT": 503,
    "ENTROPY_UNAVAILABLE": 503,
}


def error_response(exc: RewardTokenError):
    """Map a typed service outcome to (json, status)."""
    status = STATUS_BY_CODE.get(exc.code, 500)
    response = jsonify({"error": str(exc), "code": exc.code})
    response.status_code = status
    if exc.code == "TRANSIENT":
        response.headers["Retry-After"] = "1"
    return response


def _presented_credential() -> str | None:
    credential = request.headers.get(ADMIN_HEADER)
    if credential:
        return credential

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None


def require_admin(f):
    """
    Require the admin credential.

    Accepts X-Admin-Password: <secret> or Authorization: Bearer <secret>.

    SECURITY: Missing and wrong credentials get the same 401 body, and
    every denial is written to security_events. A failed audit write is
    logged and still answered with 401.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not admin_gate().authorize(_presented_credential()):
            try:
                security_service.log_security_event(
                    event_type="ADMIN_ACCESS_DENIED",
                    success=False,
                    resource=request.path,
                    action=request.method,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except DBAPIError:
                # The denial stands even when it cannot be recorded
                db.session.rollback()
                current_app.logger.exception("Failed to record admin access denial")
            return error_response(UnauthorizedError("Unauthorized"))

        return f(*args, **kwargs)

    return decorated_function
