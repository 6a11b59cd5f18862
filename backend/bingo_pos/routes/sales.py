# Overview: Flask API routes for point-of-sale sales.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import PosError
from ..services import sales_service
from ..decorators import require_auth, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Request body:
    {
        "sale": {"subtotal": 6000, "amount_tendered": 10000, "change_due": 4000,
                 "payment_method": "Efectivo"},
        "lines": [{"product_id": 1, "quantity": 2, "unit_price": 3000, "subtotal": 6000}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        sale_id = sales_service.record_sale(data.get("sale"), data.get("lines"), g.current_cashier)
        return jsonify({"sale_id": sale_id}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("can_access_dashboard")
def list_sales_route():
    try:
        sales = sales_service.list_sales()
        return jsonify({"items": [sales_service.sale_with_details(s) for s in sales]}), 200
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500
