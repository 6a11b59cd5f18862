# backend/bingo_pos/services/products_service.py
"""
Products Service

Catalog maintenance for the event's articles. Stock figures are never
written here; listing delegates to the stock ledger.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import Forbidden, ProductNotFound, StorageFailure
from ..models import Cashier, Product
from ..validation import validate_product_payload
from .audit_service import record_audit, PRODUCT_CREATED, PRODUCT_UPDATED
from .sales_service import require_cashier
from .stock_service import get_available_stock, ProductStock


def _require_manager(cashier: Cashier | None) -> Cashier:
    cashier = require_cashier(cashier)
    if not cashier.has_permission("can_manage_products"):
        raise Forbidden("Unauthorized action.")
    return cashier


def list_products_with_stock() -> list[ProductStock]:
    return get_available_stock()


def list_customer_catalog() -> list[ProductStock]:
    """Active products flagged visible to customers, with stock."""
    return get_available_stock(only_customer_visible=True)


def _commit(action: str):
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure(f"Could not {action} the article", original=exc) from exc


def create_product(cashier: Cashier | None, payload: dict) -> Product:
    cashier = _require_manager(cashier)
    data = validate_product_payload(payload, partial=False)

    product = Product(**data)
    db.session.add(product)
    _commit("create")

    record_audit(cashier, PRODUCT_CREATED, f"Article created: {product.name} (ID: {product.id})")
    return product


def update_product(cashier: Cashier | None, product_id: int, payload: dict) -> Product:
    cashier = _require_manager(cashier)
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFound("Article not found", details={"product_id": product_id})

    patch = validate_product_payload(payload, partial=True)
    for key, value in patch.items():
        setattr(product, key, value)
    _commit("update")

    record_audit(cashier, PRODUCT_UPDATED, f"Article updated: {product.name} (ID: {product.id})")
    return product


def set_flag(cashier: Cashier | None, product_id: int, flag: str, value: Any) -> Product:
    """Toggle is_active or visible_to_customers."""
    if flag not in {"is_active", "visible_to_customers"}:
        raise ValueError(f"Unknown product flag {flag}")
    return update_product(cashier, product_id, {flag: value})
