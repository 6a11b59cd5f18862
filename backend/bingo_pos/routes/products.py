# Overview: Flask API routes for the article catalog and its stock.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import PosError
from ..services import products_service
from ..decorators import require_auth, require_permission


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """All products with available and reserved stock."""
    try:
        items = products_service.list_products_with_stock()
        return jsonify({"items": [s.to_dict() for s in items]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/catalog")
def customer_catalog_route():
    """Public listing for the customer ordering page."""
    try:
        items = products_service.list_customer_catalog()
        return jsonify({"items": [s.to_dict() for s in items]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
@require_permission("can_manage_products")
def create_product_route():
    try:
        product = products_service.create_product(g.current_cashier, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("can_manage_products")
def update_product_route(product_id: int):
    try:
        product = products_service.update_product(g.current_cashier, product_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


def _toggle(product_id: int, flag: str, body_key: str):
    data = request.get_json(silent=True) or {}
    if body_key not in data:
        return jsonify({"error": f"{body_key} is required"}), 400
    try:
        product = products_service.set_flag(g.current_cashier, product_id, flag, data[body_key])
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("/<int:product_id>/active")
@require_auth
@require_permission("can_manage_products")
def set_active_route(product_id: int):
    return _toggle(product_id, "is_active", "is_active")


@products_bp.post("/<int:product_id>/visibility")
@require_auth
@require_permission("can_manage_products")
def set_visibility_route(product_id: int):
    return _toggle(product_id, "visible_to_customers", "visible_to_customers")
