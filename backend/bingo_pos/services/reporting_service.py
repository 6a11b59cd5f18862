# Overview: Dashboard and per-product sales figures for administrators.

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import StorageFailure
from ..models import Cashier, Product, RemoteOrder, Return, Sale, SaleLine
from ..models.remote_orders import ORDER_STATUS_COMPLETED
from ..models.sales import PAYMENT_METHOD_CASH, PAYMENT_METHOD_REMOTE
from bingo_pos.time_utils import minutes_between
from . import remote_order_service


def _average_verification_minutes(sale_times: dict[int, object]) -> float | None:
    """Mean of (sale time - order creation) over completed orders with a sale."""
    rows = (
        db.session.query(RemoteOrder.sale_id, RemoteOrder.created_at)
        .filter(RemoteOrder.status == ORDER_STATUS_COMPLETED, RemoteOrder.sale_id.isnot(None))
        .all()
    )
    durations = [
        minutes_between(created_at, sale_times[sale_id])
        for sale_id, created_at in rows
        if sale_id in sale_times
    ]
    if not durations:
        return None
    return sum(durations) / len(durations)


def _average_gap_by_cashier(sales, names: dict[int, str]) -> list[dict]:
    by_cashier = defaultdict(list)
    for sale in sales:
        by_cashier[sale.cashier_id].append(sale.created_at)

    result = []
    for cashier_id, times in by_cashier.items():
        if len(times) < 2:
            continue
        times.sort()
        gaps = [(b - a).total_seconds() for a, b in zip(times, times[1:])]
        result.append({
            "name": names.get(cashier_id, f"ID {cashier_id}"),
            "avg_time_seconds": sum(gaps) / len(gaps),
        })
    result.sort(key=lambda r: r["avg_time_seconds"])
    return result


def dashboard() -> dict:
    """
    Totals for the event so far.

    Returns are assumed to be refunded in cash, so they come off both total
    revenue and the cash total.
    """
    try:
        sales = db.session.query(Sale.id, Sale.subtotal, Sale.payment_method, Sale.cashier_id, Sale.created_at).all()
        total_returns = db.session.query(func.coalesce(func.sum(Return.refund_amount), 0)).scalar() or 0
        names = {cid: username for cid, username in db.session.query(Cashier.id, Cashier.username).all()}
        sale_times = {s.id: s.created_at for s in sales}
        avg_verification = _average_verification_minutes(sale_times)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not calculate dashboard data", original=exc) from exc

    gross = 0
    cash = 0
    remote = 0
    by_cashier: dict[str, int] = defaultdict(int)
    for sale in sales:
        gross += sale.subtotal
        if sale.payment_method == PAYMENT_METHOD_CASH:
            cash += sale.subtotal
        elif sale.payment_method == PAYMENT_METHOD_REMOTE:
            remote += sale.subtotal
        by_cashier[names.get(sale.cashier_id, f"ID {sale.cashier_id}")] += sale.subtotal

    sales_by_cashier = [{"name": name, "total": total} for name, total in by_cashier.items()]
    sales_by_cashier.sort(key=lambda r: r["total"], reverse=True)

    return {
        "total_revenue": gross - total_returns,
        "total_sales": len(sales),
        "total_cash": cash - total_returns,
        "total_daviplata": remote,
        "total_returns": total_returns,
        "sales_by_cashier": sales_by_cashier,
        "avg_daviplata_verification_minutes": avg_verification,
        "avg_sale_time_by_cashier": _average_gap_by_cashier(sales, names),
        "completed_remote_orders": remote_order_service.count_completed(),
    }


def sales_by_product() -> list[dict]:
    """Units and revenue per product, best sellers first."""
    rows = (
        db.session.query(
            Product.id,
            Product.name,
            func.coalesce(func.sum(SaleLine.quantity), 0).label("units_sold"),
            func.coalesce(func.sum(SaleLine.line_subtotal), 0).label("revenue"),
        )
        .outerjoin(SaleLine, SaleLine.product_id == Product.id)
        .group_by(Product.id, Product.name)
        .order_by(func.coalesce(func.sum(SaleLine.quantity), 0).desc(), Product.name.asc())
        .all()
    )
    return [
        {
            "product_id": r.id,
            "product_name": r.name,
            "units_sold": int(r.units_sold),
            "revenue": int(r.revenue),
        }
        for r in rows
    ]
