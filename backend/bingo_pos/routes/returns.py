# Overview: Flask API routes for returned articles.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import PosError
from ..services import return_service
from ..decorators import require_auth, require_permission


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
@require_permission("can_process_returns")
def create_return_route():
    """
    Request body: {"product_id": 1, "quantity": 2}

    Refund is the current article price times quantity.
    """
    try:
        data = request.get_json(silent=True) or {}
        ret = return_service.record_return(data.get("product_id"), data.get("quantity"), g.current_cashier)
        return jsonify({"return": ret.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("")
@require_auth
@require_permission("can_process_returns")
def list_returns_route():
    return jsonify({"items": [r.to_dict() for r in return_service.list_returns()]}), 200
