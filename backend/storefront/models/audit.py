from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from storefront.time_utils import to_utc_z
from .inventory import LedgerImmutableError


SEVERITIES = ("low", "medium", "high", "critical")
ACTION_STATUSES = ("success", "failed", "pending")
TARGET_TYPES = ("order", "product", "inventory", "alert", "admin", "system")


class AdminActionLog(db.Model):
    """
    Administrative audit trail.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    Written through audit_service.append(), which never raises into callers.
    target_id is an opaque string paired with target_type; no FK so entries
    outlive the records they describe.
    """
    __tablename__ = "admin_action_logs"
    __table_args__ = (
        db.Index("ix_admin_action_logs_actor_occurred", "actor_id", "occurred_at"),
        db.Index("ix_admin_action_logs_action_occurred", "action", "occurred_at"),
        db.Index("ix_admin_action_logs_target", "target_type", "target_id"),
        db.Index("ix_admin_action_logs_severity_occurred", "severity", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    actor_id = db.Column(db.Integer, nullable=True)
    actor_name = db.Column(db.String(120), nullable=False)
    actor_email = db.Column(db.String(255), nullable=True)

    action = db.Column(db.String(64), nullable=False)
    target_type = db.Column(db.String(32), nullable=False)
    target_id = db.Column(db.String(64), nullable=False)
    target_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(500), nullable=False)

    before_snapshot = db.Column(db.JSON, nullable=True)
    after_snapshot = db.Column(db.JSON, nullable=True)
    metadata_json = db.Column("metadata", db.JSON, nullable=True)

    severity = db.Column(db.String(16), nullable=False, default="medium")
    status = db.Column(db.String(16), nullable=False, default="success")
    error_message = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor": {"id": self.actor_id, "name": self.actor_name, "email": self.actor_email},
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "description": self.description,
            "changes": {"before": self.before_snapshot, "after": self.after_snapshot},
            "metadata": self.metadata_json or {},
            "severity": self.severity,
            "status": self.status,
            "error_message": self.error_message,
            "timestamp": to_utc_z(self.occurred_at),
        }


@event.listens_for(AdminActionLog, "before_update")
def _reject_log_update(mapper, connection, target):
    raise LedgerImmutableError(f"AdminActionLog {target.id} is append-only")


@event.listens_for(AdminActionLog, "before_delete")
def _reject_log_delete(mapper, connection, target):
    raise LedgerImmutableError(f"AdminActionLog {target.id} is append-only")
