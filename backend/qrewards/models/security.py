from __future__ import annotations

from ..extensions import db
from qrewards.time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Security and integrity audit log.

    WHY: Track denied admin access and integrity anomalies such as an
    issuance id collision. Critical for spotting credential guessing against
    the admin endpoints.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_type_occurred", "event_type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # ADMIN_ACCESS_DENIED, DUPLICATE_TOKEN_ID
    resource = db.Column(db.String(128), nullable=True)  # e.g., "/api/admin/stats"
    action = db.Column(db.String(64), nullable=True)     # e.g., "GET", "ISSUE_BATCH"

    # Event details
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
