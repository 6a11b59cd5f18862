# Overview: Line-detail records of remote orders and their JSON storage form.

"""
Remote order details are logically an ordered list of OrderDetail records.

The remote_orders.details column stores them as JSON text. Older rows (and
rows written by other tools) may already hold a decoded list, so readers
accept both. This module is the single place where that difference exists.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from typing import Any

from flask import current_app

from ..errors import InvalidOrder


@dataclass(frozen=True)
class OrderDetail:
    product_id: int
    quantity: int
    unit_price: int
    subtotal: int
    product_name: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> "OrderDetail":
        return cls(
            product_id=int(raw["product_id"]),
            quantity=int(raw["quantity"]),
            unit_price=int(raw["unit_price"]),
            subtotal=int(raw["subtotal"]),
            product_name=str(raw.get("product_name") or ""),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _strict_int(value: Any, field: str, index: int) -> int:
    # bool is an int subclass; floats like 2.5 must not be truncated silently
    if isinstance(value, bool):
        raise InvalidOrder(f"Line {index + 1}: {field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise InvalidOrder(f"Line {index + 1}: {field} must be an integer")


def parse_details(raw_details: Any) -> list[OrderDetail]:
    """
    Validate client-supplied details and return them as OrderDetail records.

    Raises InvalidOrder if the list is empty or any line is malformed.
    """
    if not isinstance(raw_details, (list, tuple)) or not raw_details:
        raise InvalidOrder("Order details are invalid: at least one line is required")

    parsed = []
    for i, raw in enumerate(raw_details):
        if isinstance(raw, OrderDetail):
            raw = raw.to_dict()
        if not isinstance(raw, dict):
            raise InvalidOrder(f"Line {i + 1}: expected an object")
        missing = [k for k in ("product_id", "quantity", "unit_price", "subtotal") if raw.get(k) is None]
        if missing:
            raise InvalidOrder(f"Line {i + 1}: missing {', '.join(missing)}")

        detail = OrderDetail(
            product_id=_strict_int(raw["product_id"], "product_id", i),
            quantity=_strict_int(raw["quantity"], "quantity", i),
            unit_price=_strict_int(raw["unit_price"], "unit_price", i),
            subtotal=_strict_int(raw["subtotal"], "subtotal", i),
            product_name=str(raw.get("product_name") or ""),
        )
        if detail.quantity <= 0:
            raise InvalidOrder(f"Line {i + 1}: quantity must be positive")
        if detail.unit_price < 0 or detail.subtotal < 0:
            raise InvalidOrder(f"Line {i + 1}: amounts cannot be negative")
        if detail.subtotal != detail.quantity * detail.unit_price:
            raise InvalidOrder(f"Line {i + 1}: subtotal does not match quantity x unit price")
        parsed.append(detail)

    return parsed


def dump_details(details: list[OrderDetail]) -> str:
    """Serialize details for the remote_orders.details column."""
    return json.dumps([d.to_dict() for d in details], ensure_ascii=False)


def load_details(stored: Any, order_id: int | None = None, strict: bool = False) -> list[OrderDetail]:
    """
    Deserialize a stored details value (JSON text or already-decoded list).

    Malformed values are logged and read as an empty list, unless strict=True,
    in which case InvalidOrder is raised.
    """
    if stored is None:
        value: Any = []
    elif isinstance(stored, (bytes, str)):
        try:
            value = json.loads(stored) if stored else []
        except ValueError:
            return _malformed(order_id, "not valid JSON", strict)
    else:
        value = stored

    if not isinstance(value, list):
        return _malformed(order_id, "not a list", strict)

    try:
        return [OrderDetail.from_dict(item) for item in value]
    except (KeyError, TypeError, ValueError):
        return _malformed(order_id, "line with missing or non-numeric fields", strict)


def _malformed(order_id: int | None, reason: str, strict: bool) -> list[OrderDetail]:
    if strict:
        raise InvalidOrder(
            f"Stored details for order {order_id} are unreadable ({reason})",
            details={"order_id": order_id},
        )
    current_app.logger.warning("Failed to parse remote order details for order %s: %s", order_id, reason)
    return []
