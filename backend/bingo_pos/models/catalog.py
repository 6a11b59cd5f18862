from __future__ import annotations

from ..extensions import db
from bingo_pos.time_utils import to_utc_z, utcnow

class Product(db.Model):
    """
    Sellable article for the event.

    STOCK: only initial_stock is stored. Available and reserved quantities are
    derived at read time by the stock ledger (services/stock_service.py) from
    sale lines, returns and pending remote orders.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_visible", "is_active", "visible_to_customers"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Whole Colombian pesos
    price = db.Column(db.Integer, nullable=False)
    image_url = db.Column(db.String(1024), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    visible_to_customers = db.Column(db.Boolean, nullable=False, default=True)
    initial_stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "visible_to_customers": self.visible_to_customers,
            "initial_stock": self.initial_stock,
            "created_at": to_utc_z(self.created_at),
        }
