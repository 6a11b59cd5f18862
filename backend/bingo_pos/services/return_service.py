"""
Return Processing Service

WHY: A returned unit goes back on the shelf. Stock is derived, so the only
thing to write is an append-only Return row; the stock ledger adds its
quantity back.

DESIGN PRINCIPLES:
- Refund = current product price x quantity, fixed at return time
- Requires the can_process_returns permission
- Immutable: returns are never edited or deleted
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import Forbidden, InvalidReturn, ProductNotFound, StorageFailure
from ..models import Cashier, Product, Return
from bingo_pos.time_utils import utcnow
from .audit_service import record_audit, RETURN_RECORDED, RETURN_FAILED
from .sales_service import require_cashier


def record_return(product_id: Any, quantity: Any, cashier: Cashier | None) -> Return:
    """
    Record returned units of a product.

    Raises:
        Unauthorized: no active cashier
        Forbidden: cashier may not process returns
        InvalidReturn: quantity is not a positive integer
        ProductNotFound: unknown product
        StorageFailure: insert failed
    """
    cashier = require_cashier(cashier)
    if not cashier.has_permission("can_process_returns"):
        raise Forbidden("Unauthorized action: invalid session or permissions.")

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidReturn("Quantity must be at least 1.")
    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise InvalidReturn("An article must be selected.")

    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFound("Could not find the article for the return.", details={"product_id": product_id})

    refund_amount = product.price * quantity
    ret = Return(
        product_id=product.id,
        quantity=quantity,
        refund_amount=refund_amount,
        cashier_id=cashier.id,
        created_at=utcnow(),
    )
    try:
        db.session.add(ret)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        record_audit(cashier, RETURN_FAILED, f"Return attempt for {product.name}. Error: {exc}")
        raise StorageFailure("Could not record the return", original=exc) from exc

    record_audit(
        cashier,
        RETURN_RECORDED,
        f"Return for {product.name}. Quantity: {quantity}. Amount: {refund_amount}",
    )
    return ret


def list_returns() -> list[Return]:
    """All returns newest-first with product and cashier loaded."""
    return (
        db.session.query(Return)
        .options(selectinload(Return.product), selectinload(Return.cashier))
        .order_by(Return.created_at.desc(), Return.id.desc())
        .all()
    )
