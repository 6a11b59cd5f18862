# Overview: Stock ledger; derives available and reserved quantities from raw facts.

"""
Stock Ledger

Nothing derived is ever stored. For every product:

    available = initial_stock - sold + returned - reserved

where
- sold      = sum of quantities over all sale lines
- returned  = sum of quantities over all returns
- reserved  = sum of quantities over the details of every *pending* remote order

Completing a remote order converts its reservation into sold units 1:1, so
available does not move. Cancelling one releases the reservation.

Availability is advisory: two readers can both see the last unit as free.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import StorageFailure
from ..models import Product, SaleLine, Return, RemoteOrder
from ..models.remote_orders import ORDER_STATUS_PENDING
from .order_details import load_details


@dataclass(frozen=True)
class ProductStock:
    product: Product
    available: int
    reserved: int

    def to_dict(self) -> dict:
        data = self.product.to_dict()
        data["available"] = self.available
        data["reserved"] = self.reserved
        return data


def _sum_by_product(pairs: Iterable[tuple[int, int]]) -> dict[int, int]:
    totals: dict[int, int] = defaultdict(int)
    for product_id, quantity in pairs:
        totals[product_id] += quantity or 0
    return totals


def compute_stock(
    products: Iterable[Product],
    sale_lines: Iterable[tuple[int, int]],
    returns: Iterable[tuple[int, int]],
    pending_order_details: Iterable[Any],
) -> list[ProductStock]:
    """
    Pure computation over already-fetched facts.

    sale_lines and returns are (product_id, quantity) pairs.
    pending_order_details holds the stored details value of each pending
    order (JSON text or decoded list).
    """
    sold = _sum_by_product(sale_lines)
    returned = _sum_by_product(returns)
    reserved = _sum_by_product(
        (d.product_id, d.quantity)
        for stored in pending_order_details
        for d in load_details(stored)
    )

    result = []
    for product in products:
        pid = product.id
        result.append(ProductStock(
            product=product,
            available=(product.initial_stock or 0) - sold.get(pid, 0) + returned.get(pid, 0) - reserved.get(pid, 0),
            reserved=reserved.get(pid, 0),
        ))
    return result


def _fetch(fact: str, query):
    try:
        return query.all()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure(f"Could not load {fact}", original=exc, details={"fact": fact}) from exc


def get_available_stock(exclude_order_id: int | None = None, only_customer_visible: bool = False) -> list[ProductStock]:
    """
    Fetch every fact and compute stock for all products (ordered by name).

    exclude_order_id leaves one pending order's reservation out, so an order
    being edited does not compete with itself.

    Raises StorageFailure naming the fact that could not be loaded; no
    partial picture is ever returned.
    """
    product_query = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc())
    if only_customer_visible:
        product_query = product_query.filter(
            Product.is_active.is_(True),
            Product.visible_to_customers.is_(True),
        )

    pending_query = db.session.query(RemoteOrder.details).filter(RemoteOrder.status == ORDER_STATUS_PENDING)
    if exclude_order_id is not None:
        pending_query = pending_query.filter(RemoteOrder.id != exclude_order_id)

    products = _fetch("products", product_query)
    sale_lines = _fetch("sale lines", db.session.query(SaleLine.product_id, SaleLine.quantity))
    returns = _fetch("returns", db.session.query(Return.product_id, Return.quantity))
    pending = _fetch("pending remote orders", pending_query)

    return compute_stock(products, sale_lines, returns, [row.details for row in pending])


def get_stock_map(exclude_order_id: int | None = None) -> dict[int, ProductStock]:
    return {s.product.id: s for s in get_available_stock(exclude_order_id=exclude_order_id)}
