# Overview: Flask API routes for cashier login and logout.

from flask import Blueprint, current_app, g, jsonify, request

from ..services import auth_service, session_service
from ..decorators import require_auth
from bingo_pos.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a cashier and issue a session token.

    Token must be included as "Authorization: Bearer <token>" on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        cashier = auth_service.authenticate(username, password, ip_address=request.remote_addr)
        if not cashier:
            return jsonify({"error": "Invalid username or password"}), 401

        session, token = session_service.create_session(
            cashier,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "cashier": cashier.to_dict(),
        }), 200
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"status": "logged_out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"cashier": g.current_cashier.to_dict()}), 200
