# Overview: Append-only security and integrity event log.

from __future__ import annotations

from ..extensions import db
from ..models import SecurityEvent


def log_security_event(
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    WHY: Immutable audit log for denied admin access and integrity anomalies.

    event_type examples:
    - ADMIN_ACCESS_DENIED
    - DUPLICATE_TOKEN_ID
    """
    event = SecurityEvent(
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    )
    db.session.add(event)
    db.session.commit()
    return event


def list_security_events(event_type: str | None = None, limit: int = 100) -> list[SecurityEvent]:
    q = db.session.query(SecurityEvent)
    if event_type:
        q = q.filter(SecurityEvent.event_type == event_type)
    return q.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()
