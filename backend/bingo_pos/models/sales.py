from __future__ import annotations

from ..extensions import db
from bingo_pos.time_utils import to_utc_z, utcnow

PAYMENT_METHOD_CASH = "Efectivo"
PAYMENT_METHOD_REMOTE = "Daviplata"
PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_REMOTE)


class Sale(db.Model):
    """
    Point-of-sale sale header.

    Created together with its lines in a single commit and never updated
    afterwards. A completed RemoteOrder points back here through sale_id.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_cashier_created", "cashier_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("cashiers.id"), nullable=False, index=True)

    # All amounts in whole pesos
    subtotal = db.Column(db.Integer, nullable=False)
    amount_tendered = db.Column(db.Integer, nullable=False)
    change_due = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, index=True)  # Efectivo, Daviplata

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    cashier = db.relationship("Cashier", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleLine.id",
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "cashier_id": self.cashier_id,
            "subtotal": self.subtotal,
            "amount_tendered": self.amount_tendered,
            "change_due": self.change_due,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """Individual line items on a sale."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_subtotal = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_subtotal": self.line_subtotal,
        }
