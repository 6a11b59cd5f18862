from __future__ import annotations

from ..extensions import db
from bingo_pos.time_utils import to_utc_z, utcnow

ORDER_STATUS_PENDING = "pendiente"
ORDER_STATUS_COMPLETED = "completada"
ORDER_STATUS_CANCELLED = "cancelada"


class RemoteOrder(db.Model):
    """
    Pre-paid (Daviplata) order placed by a customer and redeemed at the till.

    LIFECYCLE:
    - pendiente: created by the customer; details may be replaced wholesale
    - completada: converted into exactly one Sale (sale_id set)
    - cancelada: released; no longer reserves stock

    details is JSON text. Always go through services/order_details.py to read
    or write it.

    claim_token/claimed_at mark a completion in flight. A pending order with a
    live claim cannot be completed or cancelled by anyone else.
    """
    __tablename__ = "remote_orders"
    __table_args__ = (
        db.Index("ix_remote_orders_status_created", "status", "created_at"),
        db.Index("ix_remote_orders_customer_document", "customer_document"),
        db.Index("ix_remote_orders_customer_phone", "customer_phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Six-digit code shown to the customer; never reused, even after completion
    reference_code = db.Column(db.String(6), nullable=False, unique=True, index=True)

    details = db.Column(db.Text, nullable=False)
    total = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    customer_document = db.Column(db.String(32), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    claim_token = db.Column(db.String(64), nullable=True)
    claimed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sale = db.relationship("Sale", foreign_keys=[sale_id])

    def __repr__(self) -> str:
        return f"<RemoteOrder id={self.id} code={self.reference_code} status={self.status}>"

    def to_dict(self) -> dict:
        from ..services.order_details import load_details

        return {
            "id": self.id,
            "reference_code": self.reference_code,
            "details": [d.to_dict() for d in load_details(self.details, order_id=self.id)],
            "total": self.total,
            "status": self.status,
            "customer_document": self.customer_document,
            "customer_phone": self.customer_phone,
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
