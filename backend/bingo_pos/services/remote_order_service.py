# Overview: Service-layer operations for remote (Daviplata) orders; create, edit-while-pending, lookup, cancel.

"""
Remote Order Lifecycle

STATES: pendiente -> completada (via reconciliation_service)
        pendiente -> cancelada  (cancel_remote_order / expire_stale_orders)

Invariants:
- An order is created pendiente with a reference code no other order has
  ever used.
- Details, total and customer data may be replaced wholesale only while the
  order is pendiente and not claimed by a completion in flight. The guard is
  part of the UPDATE itself (compare-and-set), never a read-then-write.
- Completed and cancelled orders never change again.
- Lookups return orders newest-first with details decoded. An empty result
  is not an error at this layer.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Any

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import (
    InvalidOrder,
    OrderRejected,
    InsufficientStock,
    OrderNotFound,
    OrderNotEditable,
    OrderAlreadyProcessed,
    StorageFailure,
)
from ..models import Cashier, Product, RemoteOrder
from ..models.remote_orders import (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
)
from bingo_pos.time_utils import utcnow
from .order_details import OrderDetail, parse_details, dump_details
from .reference_code_service import generate_reference_code
from .stock_service import get_stock_map
from .fraud_check_service import precheck_remote_order
from .concurrency import conditional_update
from .audit_service import record_audit, REMOTE_ORDER_CANCELLED, REMOTE_ORDERS_EXPIRED


# =============================================================================
# VALIDATION
# =============================================================================

def _parse_total(total: Any) -> int:
    if isinstance(total, bool) or not isinstance(total, (int, float)):
        raise InvalidOrder("Order details are invalid: total must be a number")
    if isinstance(total, float):
        if not total.is_integer():
            raise InvalidOrder("Order details are invalid: total must be whole pesos")
        total = int(total)
    if total <= 0:
        raise InvalidOrder("Order details are invalid: total must be greater than zero")
    return total


def _normalize_customer_info(customer_info: dict | None) -> tuple[str | None, str | None]:
    info = customer_info or {}
    document = (str(info.get("document") or "")).strip() or None
    phone = (str(info.get("phone") or "")).strip() or None
    return document, phone


def _validate_order(raw_details: Any, total: Any) -> tuple[list[OrderDetail], int]:
    details = parse_details(raw_details)
    total = _parse_total(total)

    lines_total = sum(d.subtotal for d in details)
    if lines_total != total:
        raise InvalidOrder(
            "Order details are invalid: total does not match the sum of the lines",
            details={"total": total, "lines_total": lines_total},
        )

    product_ids = {d.product_id for d in details}
    try:
        active_ids = {
            pid for (pid,) in db.session.query(Product.id)
            .filter(Product.id.in_(product_ids), Product.is_active.is_(True))
            .all()
        }
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not load products", original=exc) from exc

    unknown = sorted(product_ids - active_ids)
    if unknown:
        raise InvalidOrder(
            "Order contains products that are not available for sale",
            details={"product_ids": unknown},
        )
    return details, total


def _check_availability(details: list[OrderDetail], exclude_order_id: int | None = None) -> None:
    """
    Advisory read-then-decide check. Concurrent reservations can still
    oversell; this only stops the obvious cases.
    """
    if not current_app.config.get("ENFORCE_STOCK_ON_RESERVATION", True):
        return

    requested: dict[int, int] = {}
    for d in details:
        requested[d.product_id] = requested.get(d.product_id, 0) + d.quantity

    stock = get_stock_map(exclude_order_id=exclude_order_id)
    short = []
    for product_id, quantity in requested.items():
        entry = stock.get(product_id)
        available = entry.available if entry else 0
        if quantity > available:
            short.append({
                "product_id": product_id,
                "requested_quantity": quantity,
                "available": max(available, 0),
            })

    if short:
        raise InsufficientStock("Not enough stock for some products", details={"items": short})


def _run_precheck(total: int, document: str | None, phone: str | None) -> None:
    verdict = precheck_remote_order(total, {"document": document, "phone": phone})
    if not verdict.is_safe:
        current_app.logger.warning(
            "AI security flagged remote order: %s (total=%s, document=%s, phone=%s)",
            verdict.reason, total, document, phone,
        )
        raise OrderRejected(f"Transaction not processed. Reason: {verdict.reason}")


def _claim_is_free(now):
    """
    No live claim, and no sale already recorded against the order. A claim
    older than the TTL can be taken over; one left behind by a sale that was
    recorded but never flipped cannot.
    """
    ttl = timedelta(seconds=current_app.config.get("REMOTE_ORDER_CLAIM_TTL_SECONDS", 120))
    return and_(
        RemoteOrder.sale_id.is_(None),
        or_(RemoteOrder.claim_token.is_(None), RemoteOrder.claimed_at < now - ttl),
    )


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_remote_order(raw_details: Any, total: Any, customer_info: dict | None = None) -> RemoteOrder:
    """
    Create a pending remote order.

    Raises:
        InvalidOrder: empty/malformed details, non-positive or mismatched total
        OrderRejected: the fraud check refused the order
        InsufficientStock: advisory stock check failed
        CodeGenerationExhausted: no unique reference code after 10 draws
        StorageFailure: the insert failed
    """
    details, total = _validate_order(raw_details, total)
    document, phone = _normalize_customer_info(customer_info)

    _run_precheck(total, document, phone)
    _check_availability(details)

    code = generate_reference_code()

    order = RemoteOrder(
        reference_code=code,
        details=dump_details(details),
        total=total,
        status=ORDER_STATUS_PENDING,
        customer_document=document,
        customer_phone=phone,
        created_at=utcnow(),
    )
    try:
        db.session.add(order)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not create the order", original=exc) from exc

    return order


def update_remote_order(
    order_id: int,
    reference_code: Any,
    raw_details: Any,
    total: Any,
    customer_info: dict | None = None,
) -> RemoteOrder:
    """
    Replace details, total and customer data of a pending order.

    The caller must present the order's reference code as well as its id;
    ids are sequential and the edit endpoint is public.

    Raises OrderNotEditable if the order is missing, the code does not match,
    the order is no longer pending, or it is being completed right now.
    Validation failures as in create_remote_order.
    """
    code = str(reference_code or "").strip()
    if not code:
        raise OrderNotEditable("The reference code is required to edit an order.", details={"order_id": order_id})

    details, total = _validate_order(raw_details, total)
    document, phone = _normalize_customer_info(customer_info)

    _run_precheck(total, document, phone)
    _check_availability(details, exclude_order_id=order_id)

    try:
        changed = conditional_update(
            db.session.query(RemoteOrder).filter(
                RemoteOrder.id == order_id,
                RemoteOrder.reference_code == code,
                RemoteOrder.status == ORDER_STATUS_PENDING,
                RemoteOrder.claim_token.is_(None),
            ),
            {
                "details": dump_details(details),
                "total": total,
                "customer_document": document,
                "customer_phone": phone,
            },
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not update the order", original=exc) from exc

    if changed == 0:
        raise OrderNotEditable(
            "The order could not be updated. It may have already been processed.",
            details={"order_id": order_id},
        )

    order = db.session.get(RemoteOrder, order_id)
    db.session.refresh(order)
    return order


# =============================================================================
# LOOKUPS
# =============================================================================

def _newest_first(query):
    return query.order_by(RemoteOrder.created_at.desc(), RemoteOrder.id.desc())


def get_remote_order(order_id: int) -> RemoteOrder:
    order = db.session.get(RemoteOrder, order_id)
    if not order:
        raise OrderNotFound("Order not found", details={"order_id": order_id})
    return order


def find_by_code(code: str) -> list[RemoteOrder]:
    code = (code or "").strip()
    if not code:
        return []
    return _newest_first(db.session.query(RemoteOrder).filter(RemoteOrder.reference_code == code)).all()


def find_by_customer(document_or_phone: str) -> list[RemoteOrder]:
    value = (document_or_phone or "").strip()
    if not value:
        return []
    return _newest_first(
        db.session.query(RemoteOrder).filter(
            or_(RemoteOrder.customer_document == value, RemoteOrder.customer_phone == value)
        )
    ).all()


def list_pending() -> list[RemoteOrder]:
    return _newest_first(
        db.session.query(RemoteOrder).filter(RemoteOrder.status == ORDER_STATUS_PENDING)
    ).all()


def count_completed() -> int:
    return db.session.query(RemoteOrder).filter(RemoteOrder.status == ORDER_STATUS_COMPLETED).count()


# =============================================================================
# COMPLETION CLAIM (used by reconciliation_service)
# =============================================================================

def claim_for_completion(order_id: int) -> str | None:
    """
    Compare-and-set a fresh claim token on a pending, unclaimed order.

    Returns the token, or None if someone else holds a live claim or the
    order is no longer pending. Commits.
    """
    token = uuid.uuid4().hex
    now = utcnow()
    changed = conditional_update(
        db.session.query(RemoteOrder).filter(
            RemoteOrder.id == order_id,
            RemoteOrder.status == ORDER_STATUS_PENDING,
            _claim_is_free(now),
        ),
        {"claim_token": token, "claimed_at": now},
    )
    db.session.commit()
    return token if changed == 1 else None


def release_claim(order_id: int, token: str) -> None:
    """Drop our claim so the order can be retried. Never raises."""
    try:
        conditional_update(
            db.session.query(RemoteOrder).filter(
                RemoteOrder.id == order_id,
                RemoteOrder.claim_token == token,
                RemoteOrder.status == ORDER_STATUS_PENDING,
            ),
            {"claim_token": None, "claimed_at": None},
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Failed to release claim on remote order %s", order_id, exc_info=True)


def mark_completed(order_id: int, token: str, sale_id: int) -> int:
    """Flip a claimed pending order to completada. Returns rows changed. Commits."""
    changed = conditional_update(
        db.session.query(RemoteOrder).filter(
            RemoteOrder.id == order_id,
            RemoteOrder.status == ORDER_STATUS_PENDING,
            RemoteOrder.claim_token == token,
        ),
        {
            "status": ORDER_STATUS_COMPLETED,
            "sale_id": sale_id,
            "completed_at": utcnow(),
            "claim_token": None,
            "claimed_at": None,
        },
    )
    db.session.commit()
    return changed


def flag_for_reconciliation(order_id: int, token: str, sale_id: int) -> int:
    """
    Record sale_id on an order whose flip failed, leaving it pendiente.

    Once sale_id is set no claim, cancel or expiry guard matches the order
    again, whatever the age of its claim. Returns rows changed. Commits.
    """
    changed = conditional_update(
        db.session.query(RemoteOrder).filter(
            RemoteOrder.id == order_id,
            RemoteOrder.status == ORDER_STATUS_PENDING,
            RemoteOrder.claim_token == token,
            RemoteOrder.sale_id.is_(None),
        ),
        {"sale_id": sale_id},
    )
    db.session.commit()
    return changed


# =============================================================================
# CANCELLATION / EXPIRY
# =============================================================================

def cancel_remote_order(order_id: int, cashier: Cashier | None = None) -> RemoteOrder:
    """
    pendiente -> cancelada, releasing the order's reservation.

    Raises OrderNotFound, or OrderAlreadyProcessed if the order is not
    pending or a completion is in flight.
    """
    order = get_remote_order(order_id)
    now = utcnow()
    try:
        changed = conditional_update(
            db.session.query(RemoteOrder).filter(
                RemoteOrder.id == order_id,
                RemoteOrder.status == ORDER_STATUS_PENDING,
                _claim_is_free(now),
            ),
            {"status": ORDER_STATUS_CANCELLED, "cancelled_at": now, "claim_token": None, "claimed_at": None},
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not cancel the order", original=exc) from exc

    if changed == 0:
        raise OrderAlreadyProcessed(
            "This order was already processed or cancelled.",
            details={"order_id": order_id},
        )

    db.session.refresh(order)
    record_audit(cashier, REMOTE_ORDER_CANCELLED, f"Remote order {order.reference_code} cancelled.")
    return order


def expire_stale_orders(older_than_minutes: int | None = None) -> int:
    """Cancel unclaimed pending orders older than the threshold. Returns how many."""
    if older_than_minutes is None:
        older_than_minutes = current_app.config.get("REMOTE_ORDER_EXPIRY_MINUTES", 240)
    now = utcnow()
    cutoff = now - timedelta(minutes=older_than_minutes)

    try:
        expired = conditional_update(
            db.session.query(RemoteOrder).filter(
                RemoteOrder.status == ORDER_STATUS_PENDING,
                RemoteOrder.created_at < cutoff,
                _claim_is_free(now),
            ),
            {"status": ORDER_STATUS_CANCELLED, "cancelled_at": now, "claim_token": None, "claimed_at": None},
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not expire stale orders", original=exc) from exc

    if expired:
        record_audit(None, REMOTE_ORDERS_EXPIRED, f"{expired} pending remote orders older than {older_than_minutes} minutes cancelled.")
    return expired
