# Overview: Flask API routes for dashboard reports.

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import PosError
from ..services import analysis_service, reporting_service
from ..decorators import require_auth, require_permission


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_permission("can_access_dashboard")
def dashboard_route():
    try:
        return jsonify(reporting_service.dashboard()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/sales-by-product")
@require_auth
@require_permission("can_access_dashboard")
def sales_by_product_route():
    return jsonify({"items": reporting_service.sales_by_product()}), 200


@reports_bp.post("/ai-analysis")
@require_auth
@require_permission("can_access_ai_analysis")
def ai_analysis_route():
    """
    Request body (optional): {"question": "¿Qué caja vende más?"}

    Returns 200 with {"analysis": "<markdown>"}; 503 AI_UNAVAILABLE when the
    AI service is not configured or fails.
    """
    data = request.get_json(silent=True) or {}
    question = data.get("question") if isinstance(data, dict) else None
    try:
        return jsonify({"analysis": analysis_service.dashboard_analysis(g.current_cashier, question)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to produce dashboard analysis")
        return jsonify({"error": "Internal server error"}), 500
