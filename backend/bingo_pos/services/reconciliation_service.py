# Overview: Converts a pending remote order into a point-of-sale sale exactly once.

"""
Remote Order Reconciliation

STEPS (complete_remote_order):
1. Load the order (OrderNotFound).
2. Reject anything not pendiente (OrderAlreadyProcessed).
3. Claim the order with a compare-and-set token. Losing the claim means
   another completion is in flight or already done (OrderAlreadyProcessed);
   no sale is created.
4. Record the sale (Daviplata, tendered = total, zero change) through the
   sale recorder. On failure: release the claim, audit, re-raise. The order
   stays pendiente and the cashier can retry.
5. Flip the order to completada with sale_id, conditioned on still being
   pendiente and still holding our claim.
6. If step 5 fails or changes zero rows, the sale already exists. That is
   audited as INCONSISTENT_STATE and raised. The sale is NOT rolled back and
   the claim is left in place. The sale id is also written to the order
   (best-effort), which keeps claim, cancel and expiry off it for good, so
   the order cannot be completed again before someone reconciles it by hand.
7. Audit REMOTE_ORDER_COMPLETED.

Sale first, order second: if anything breaks between the two, the till has
the payment rather than losing a payment the customer already made.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import (
    InconsistentState,
    InvalidOrder,
    OrderAlreadyProcessed,
    OrderNotFound,
    PosError,
    StorageFailure,
)
from ..models import Cashier, RemoteOrder
from ..models.remote_orders import ORDER_STATUS_PENDING
from ..models.sales import PAYMENT_METHOD_REMOTE
from . import remote_order_service, sales_service
from .order_details import load_details
from .concurrency import lock_for_update
from .audit_service import (
    record_audit,
    INCONSISTENT_STATE,
    REMOTE_ORDER_COMPLETED,
    REMOTE_ORDER_RECONCILIATION_FAILED,
)


def _build_sale(order: RemoteOrder) -> tuple[dict, list[dict]]:
    details = load_details(order.details, order_id=order.id, strict=True)
    if not details:
        raise InvalidOrder(f"Order {order.reference_code} has no lines", details={"order_id": order.id})

    header = {
        "subtotal": order.total,
        "amount_tendered": order.total,
        "change_due": 0,
        "payment_method": PAYMENT_METHOD_REMOTE,
    }
    lines = [
        {
            "product_id": d.product_id,
            "quantity": d.quantity,
            "unit_price": d.unit_price,
            "subtotal": d.subtotal,
        }
        for d in details
    ]
    return header, lines


def complete_remote_order(order_id: int, cashier: Cashier | None) -> RemoteOrder:
    """
    Reconcile a pending remote order into a sale. Returns the completed order.

    Raises:
        Unauthorized, OrderNotFound, OrderAlreadyProcessed, InvalidOrder,
        InvalidSale, StorageFailure: nothing changed; safe to retry
        InconsistentState: the sale was recorded but the order was not
            flipped; needs manual reconciliation
    """
    cashier = sales_service.require_cashier(cashier)

    order = lock_for_update(db.session.query(RemoteOrder).filter_by(id=order_id)).first()
    if order is None:
        db.session.rollback()
        raise OrderNotFound("Order not found", details={"order_id": order_id})
    if order.status != ORDER_STATUS_PENDING:
        db.session.rollback()
        raise OrderAlreadyProcessed(
            "This order was already processed or cancelled.",
            details={"order_id": order_id, "status": order.status},
        )
    if order.sale_id is not None:
        db.session.rollback()
        raise OrderAlreadyProcessed(
            f"Order {order.reference_code} already has sale {order.sale_id} and is waiting for manual review.",
            details={"order_id": order_id, "sale_id": order.sale_id},
        )

    reference_code = order.reference_code
    try:
        header, lines = _build_sale(order)
    except InvalidOrder:
        db.session.rollback()
        raise

    try:
        token = remote_order_service.claim_for_completion(order_id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not reserve the order for completion", original=exc) from exc
    if token is None:
        raise OrderAlreadyProcessed(
            "This order was already processed or is being processed by another cashier.",
            details={"order_id": order_id},
        )

    try:
        sale_id = sales_service.record_sale(header, lines, cashier, run_fraud_check=False, audit=False)
    except PosError as exc:
        remote_order_service.release_claim(order_id, token)
        record_audit(
            cashier,
            REMOTE_ORDER_RECONCILIATION_FAILED,
            f"Error completing remote order {reference_code}: {exc.message}",
        )
        raise

    failure_reason = None
    try:
        changed = remote_order_service.mark_completed(order_id, token, sale_id)
        if changed != 1:
            failure_reason = "order no longer pending or claim lost"
    except SQLAlchemyError as exc:
        db.session.rollback()
        failure_reason = str(exc)

    if failure_reason is not None:
        try:
            remote_order_service.flag_for_reconciliation(order_id, token, sale_id)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.error(
                "Could not record sale %s on remote order %s", sale_id, reference_code, exc_info=True
            )
        current_app.logger.error(
            "INCONSISTENT STATE: sale %s created for remote order %s but the order was not updated (%s)",
            sale_id, reference_code, failure_reason,
        )
        record_audit(
            cashier,
            INCONSISTENT_STATE,
            f"ALERT! Sale {sale_id} created for remote order {reference_code}, "
            f"but the order could not be updated ({failure_reason}). Manual review required.",
        )
        raise InconsistentState(reference_code, sale_id, failure_reason)

    record_audit(
        cashier,
        REMOTE_ORDER_COMPLETED,
        f"Remote order {reference_code} completed. Sale ID: {sale_id}.",
    )
    return remote_order_service.get_remote_order(order_id)
