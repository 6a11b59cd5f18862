from __future__ import annotations

from ..extensions import db
from bingo_pos.time_utils import to_utc_z, utcnow

class AuditLogEntry(db.Model):
    """
    Cashier activity audit trail.

    IMMUTABLE: Never update or delete. Append-only.
    cashier_name is a snapshot so entries stay readable if the cashier is renamed.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_action_occurred", "action", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("cashiers.id"), nullable=True, index=True)
    cashier_name = db.Column(db.String(255), nullable=True)

    action = db.Column(db.String(64), nullable=False, index=True)  # SALE_RECORDED, INCONSISTENT_STATE, ...
    description = db.Column(db.Text, nullable=False)
    ip_address = db.Column(db.String(45), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
            "action": self.action,
            "description": self.description,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
