from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditAction:
    SALES_RECORD = "SALES_RECORD"
    SALES_RETURN = "SALES_RETURN"
    INVENTORY_RECORD = "INVENTORY_RECORD"
    INVENTORY_COMPLETE = "INVENTORY_COMPLETE"
    INVENTORY_RECONCILE = "INVENTORY_RECONCILE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


class AuditLog(db.Model):
    """
    Append-only audit trail of who did what to which ledger record.

    IMMUTABLE: Never update or delete. Written after the audited operation
    commits; a failed audit write never undoes the operation.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_business_created", "business_id", "created_at"),
        db.Index("ix_audit_logs_resource", "resource_type", "resource_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)

    resource_type = db.Column(db.String(64), nullable=True)
    resource_id = db.Column(db.Integer, nullable=True)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "action": self.action,
            "description": self.description,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "business_id": self.business_id,
            "outlet_id": self.outlet_id,
            "created_at": to_utc_z(self.created_at),
        }
