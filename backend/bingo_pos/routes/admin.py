# Overview: Flask API routes for cashier administration and the audit log.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import PosError
from ..services import audit_service, cashier_service
from ..decorators import require_auth, require_permission


admin_bp = Blueprint("admin", __name__, url_prefix="/api")


@admin_bp.get("/cashiers")
@require_auth
@require_permission("can_manage_cashiers")
def list_cashiers_route():
    return jsonify({"items": [c.to_dict() for c in cashier_service.list_cashiers()]}), 200


@admin_bp.post("/cashiers")
@require_auth
@require_permission("can_manage_cashiers")
def create_cashier_route():
    """
    Request body:
    {
        "username": "ana", "full_name": "Ana Torres", "password": "secret1",
        "can_process_returns": true, ...
    }
    """
    try:
        cashier = cashier_service.create_cashier(g.current_cashier, request.get_json(silent=True))
        return jsonify({"cashier": cashier.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create cashier")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/cashiers/<int:cashier_id>")
@require_auth
@require_permission("can_manage_cashiers")
def update_cashier_route(cashier_id: int):
    try:
        cashier = cashier_service.update_cashier(g.current_cashier, cashier_id, request.get_json(silent=True))
        return jsonify({"cashier": cashier.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update cashier %s", cashier_id)
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/audit-log")
@require_auth
@require_permission("can_view_audit_log")
def audit_log_route():
    limit = request.args.get("limit", type=int)
    entries = audit_service.list_audit_logs(limit)
    return jsonify({"items": [e.to_dict() for e in entries]}), 200
