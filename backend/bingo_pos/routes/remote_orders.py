# Overview: Flask API routes for Daviplata remote orders and their reconciliation.

"""
Remote Order API Routes

Customers (no login) create and edit their own pending orders from the
ordering page. Cashiers with can_verify_remote_orders look orders up by
reference code or customer, complete them once payment is confirmed, or
cancel them.

INCONSISTENT_STATE responses (500) mean the sale was recorded but the order
was not flipped; the message tells the cashier to get an administrator.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import PosError
from ..services import reconciliation_service, remote_order_service
from ..decorators import require_auth, require_permission


remote_orders_bp = Blueprint("remote_orders", __name__, url_prefix="/api/remote-orders")


def _customer_info(data: dict) -> dict:
    info = data.get("customer_info") or {}
    return info if isinstance(info, dict) else {}


@remote_orders_bp.post("")
def create_remote_order_route():
    """
    Request body:
    {
        "details": [{"product_id": 1, "quantity": 2, "unit_price": 3000, "subtotal": 6000}],
        "total": 6000,
        "customer_info": {"document": "1020304050", "phone": "3001234567"}
    }

    Returns 201 with the order including its six-digit reference_code.
    """
    try:
        data = request.get_json(silent=True) or {}
        order = remote_order_service.create_remote_order(
            data.get("details"), data.get("total"), _customer_info(data)
        )
        return jsonify({"order": order.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create remote order")
        return jsonify({"error": "Internal server error"}), 500


@remote_orders_bp.put("/<int:order_id>")
def update_remote_order_route(order_id: int):
    """
    Replace details/total of an order that is still pending and unclaimed.

    The body must carry the order's six-digit reference_code.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict) or not data.get("reference_code"):
        return jsonify({"error": "reference_code is required"}), 400
    try:
        order = remote_order_service.update_remote_order(
            order_id, data["reference_code"], data.get("details"), data.get("total"), _customer_info(data)
        )
        return jsonify({"order": order.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update remote order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@remote_orders_bp.get("/lookup")
@require_auth
@require_permission("can_verify_remote_orders")
def lookup_route():
    """?code=<reference code> or ?customer=<document or phone>."""
    code = (request.args.get("code") or "").strip()
    customer = (request.args.get("customer") or "").strip()
    try:
        if code:
            orders = remote_order_service.find_by_code(code)
        elif customer:
            orders = remote_order_service.find_by_customer(customer)
        else:
            return jsonify({"error": "code or customer query parameter required"}), 400
        return jsonify({"items": [o.to_dict() for o in orders]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@remote_orders_bp.get("/pending")
@require_auth
@require_permission("can_verify_remote_orders")
def pending_route():
    try:
        orders = remote_order_service.list_pending()
        return jsonify({"items": [o.to_dict() for o in orders]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@remote_orders_bp.post("/<int:order_id>/complete")
@require_auth
@require_permission("can_verify_remote_orders")
def complete_route(order_id: int):
    try:
        order = reconciliation_service.complete_remote_order(order_id, g.current_cashier)
        return jsonify({"order": order.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete remote order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@remote_orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_permission("can_verify_remote_orders")
def cancel_route(order_id: int):
    try:
        order = remote_order_service.cancel_remote_order(order_id, g.current_cashier)
        return jsonify({"order": order.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
