from __future__ import annotations

from ..extensions import db
from bingo_pos.time_utils import to_utc_z, utcnow

class Return(db.Model):
    """
    Returned units of a product.

    IMMUTABLE: append-only. refund_amount is fixed at return time from the
    product's price at that moment.
    """
    __tablename__ = "returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    refund_amount = db.Column(db.Integer, nullable=False)
    cashier_id = db.Column(db.Integer, db.ForeignKey("cashiers.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product")
    cashier = db.relationship("Cashier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "refund_amount": self.refund_amount,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier.full_name if self.cashier else None,
            "created_at": to_utc_z(self.created_at),
        }
