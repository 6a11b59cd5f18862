"""
Sale Recorder

WHY: This is the single writer of "something was sold". Stock is derived
from sale lines, so a sale header without its lines (or lines without a
header) would corrupt every stock figure.

DESIGN:
- Header and lines are written in one session transaction: flush header,
  add lines, one commit. Any store error rolls the whole unit back.
- The audit entry is written after the commit and is best-effort.
- The optional fraud review runs after the commit as a dispatched side
  effect. It can only add audit entries; sales are never reversed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import InvalidSale, StorageFailure, Unauthorized
from ..models import Cashier, Product, Sale, SaleLine
from ..models.sales import PAYMENT_METHODS, PAYMENT_METHOD_CASH
from bingo_pos.time_utils import utcnow
from .audit_service import record_audit, SALE_RECORDED, SALE_FAILED
from .fraud_check_service import review_committed_sale
from .side_effects import dispatch


@dataclass(frozen=True)
class SaleHeader:
    subtotal: int
    amount_tendered: int
    change_due: int
    payment_method: str


@dataclass(frozen=True)
class SaleLineInput:
    product_id: int
    quantity: int
    unit_price: int
    subtotal: int


def require_cashier(cashier: Cashier | None) -> Cashier:
    if cashier is None or not getattr(cashier, "id", None) or not cashier.is_active:
        raise Unauthorized("Unauthorized action: invalid cashier session.")
    return cashier


def _int_field(raw: dict, key: str, where: str) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or value is None:
        raise InvalidSale(f"{where}: {key} is required and must be an integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise InvalidSale(f"{where}: {key} must be an integer")
    return value


def parse_header(raw: Any) -> SaleHeader:
    if isinstance(raw, SaleHeader):
        return raw
    if not isinstance(raw, dict):
        raise InvalidSale("Sale header is required")

    header = SaleHeader(
        subtotal=_int_field(raw, "subtotal", "Sale"),
        amount_tendered=_int_field(raw, "amount_tendered", "Sale"),
        change_due=_int_field(raw, "change_due", "Sale"),
        payment_method=str(raw.get("payment_method") or ""),
    )
    if header.payment_method not in PAYMENT_METHODS:
        raise InvalidSale(f"Sale: payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    if header.subtotal < 0 or header.amount_tendered < 0:
        raise InvalidSale("Sale: amounts cannot be negative")
    if header.payment_method == PAYMENT_METHOD_CASH and header.amount_tendered < header.subtotal:
        raise InvalidSale("Sale: amount tendered is less than the subtotal")
    if header.change_due != header.amount_tendered - header.subtotal:
        raise InvalidSale("Sale: change due does not match amount tendered minus subtotal")
    return header


def parse_lines(raw_lines: Any) -> list[SaleLineInput]:
    if not isinstance(raw_lines, (list, tuple)) or not raw_lines:
        raise InvalidSale("Cannot record a sale with no lines")

    lines = []
    for i, raw in enumerate(raw_lines):
        if isinstance(raw, SaleLineInput):
            lines.append(raw)
            continue
        if not isinstance(raw, dict):
            raise InvalidSale(f"Line {i + 1}: expected an object")
        where = f"Line {i + 1}"
        line = SaleLineInput(
            product_id=_int_field(raw, "product_id", where),
            quantity=_int_field(raw, "quantity", where),
            unit_price=_int_field(raw, "unit_price", where),
            subtotal=_int_field(raw, "subtotal", where),
        )
        if line.quantity <= 0:
            raise InvalidSale(f"{where}: quantity must be positive")
        if line.unit_price < 0 or line.subtotal < 0:
            raise InvalidSale(f"{where}: amounts cannot be negative")
        if line.subtotal != line.quantity * line.unit_price:
            raise InvalidSale(f"{where}: subtotal does not match quantity x unit price")
        lines.append(line)
    return lines


def _validate(header: SaleHeader, lines: list[SaleLineInput]) -> None:
    lines_total = sum(line.subtotal for line in lines)
    if lines_total != header.subtotal:
        raise InvalidSale(
            "Sale subtotal does not match the sum of its lines",
            details={"subtotal": header.subtotal, "lines_total": lines_total},
        )

    product_ids = {line.product_id for line in lines}
    found = {pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()}
    missing = sorted(product_ids - found)
    if missing:
        raise InvalidSale("Sale references unknown products", details={"product_ids": missing})


def _build_sale_line(sale: Sale, line: SaleLineInput) -> SaleLine:
    return SaleLine(
        sale_id=sale.id,
        product_id=line.product_id,
        quantity=line.quantity,
        unit_price=line.unit_price,
        line_subtotal=line.subtotal,
    )


def record_sale(
    raw_header: Any,
    raw_lines: Any,
    cashier: Cashier | None,
    run_fraud_check: bool = True,
    audit: bool = True,
) -> int:
    """
    Atomically persist a sale header and its lines. Returns the new sale id.

    Raises:
        Unauthorized: no active, identified cashier
        InvalidSale: malformed header/lines or unknown products
        StorageFailure: the store rejected the write (nothing was persisted)
    """
    cashier = require_cashier(cashier)
    header = parse_header(raw_header)
    lines = parse_lines(raw_lines)
    try:
        _validate(header, lines)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not load the products for this sale", original=exc) from exc

    try:
        sale = Sale(
            cashier_id=cashier.id,
            subtotal=header.subtotal,
            amount_tendered=header.amount_tendered,
            change_due=header.change_due,
            payment_method=header.payment_method,
            created_at=utcnow(),
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(_build_sale_line(sale, line))
        db.session.flush()

        db.session.commit()
        sale_id = sale.id
    except SQLAlchemyError as exc:
        db.session.rollback()
        message = f"Sale transaction failed: {exc}"
        current_app.logger.warning("Failed to record sale (subtotal=%s)", header.subtotal, exc_info=True)
        if audit:
            record_audit(
                cashier,
                SALE_FAILED,
                f"Error creating sale. Subtotal: {header.subtotal}. Error: {message}",
                "N/A",
            )
        raise StorageFailure("Could not record the sale", original=exc) from exc

    if audit:
        record_audit(cashier, SALE_RECORDED, f"Sale ID: {sale_id}. Total: {header.subtotal}.", "N/A")

    if run_fraud_check and current_app.config.get("FRAUD_CHECK_ENABLED", True):
        dispatch(review_committed_sale, sale_id, header.subtotal, cashier.id)

    return sale_id


def list_sales() -> list[Sale]:
    """All sales newest-first, with cashier and lines (and their products) loaded."""
    return (
        db.session.query(Sale)
        .options(
            selectinload(Sale.lines).selectinload(SaleLine.product),
            selectinload(Sale.cashier),
        )
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )


def sale_with_details(sale: Sale) -> dict:
    data = sale.to_dict(include_lines=True)
    data["cashier_name"] = sale.cashier.full_name if sale.cashier else None
    return data
