# Overview: Flask API routes for the ordering-page support chat.

"""
Conversation API Routes

Parents (no login) post questions to the assistant. Staff with
can_access_ai_analysis read every chat, reply in a session, and poll the
number of sessions still waiting on the parent.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..errors import PosError
from ..services import conversation_service
from ..decorators import require_auth, require_permission


conversations_bp = Blueprint("conversations", __name__, url_prefix="/api/conversations")


@conversations_bp.post("/ask")
def ask_route():
    """
    Request body:
    {
        "session_id": "b7c1...", "question": "¿Cómo pago?",
        "customer_info": {"document": "1020304050", "phone": "3001234567"}
    }

    Returns 200 with the assistant's reply. 503 AI_UNAVAILABLE means the
    question was stored but nobody answered it automatically.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "JSON object body required"}), 400
    try:
        reply = conversation_service.ask_assistant(
            data.get("session_id"), data.get("question"), data.get("customer_info")
        )
        return jsonify({"reply": reply.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to answer chat question")
        return jsonify({"error": "Internal server error"}), 500


@conversations_bp.get("")
@require_auth
@require_permission("can_access_ai_analysis")
def list_conversations_route():
    try:
        return jsonify({"sessions": conversation_service.list_conversations(g.current_cashier)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@conversations_bp.get("/pending-count")
@require_auth
@require_permission("can_access_ai_analysis")
def pending_count_route():
    try:
        return jsonify({"count": conversation_service.count_pending(g.current_cashier)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@conversations_bp.post("/<session_id>/reply")
@require_auth
@require_permission("can_access_ai_analysis")
def reply_route(session_id: str):
    """Request body: {"message": "..."}"""
    data = request.get_json(silent=True) or {}
    message = data.get("message") if isinstance(data, dict) else None
    try:
        row = conversation_service.send_admin_message(g.current_cashier, session_id, message)
        return jsonify({"message": row.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to send staff reply to chat %s", session_id)
        return jsonify({"error": "Internal server error"}), 500
