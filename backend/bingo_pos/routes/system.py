# backend/bingo_pos/routes/system.py
"""
Health and customer-presence endpoints. Both are public.
"""

import time

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text

from ..extensions import db
from ..services import presence_service
from bingo_pos.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503


@system_bp.get("/presence")
def presence_snapshot():
    return jsonify(presence_service.get_tracker().snapshot()), 200


@system_bp.post("/presence")
def presence_update():
    """Request body: {"session_id": "...", "state": "consultando" | "pagando" | "completado" | "inactive"}"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid request body"}), 400
    session_id = data.get("session_id")
    if not session_id:
        return jsonify({"error": "session_id is required"}), 400

    total = presence_service.get_tracker().update(str(session_id), data.get("state"))
    return jsonify({"status": "ok", "total": total}), 200
