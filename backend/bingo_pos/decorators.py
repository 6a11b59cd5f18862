# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .models.cashiers import PERMISSION_FLAGS
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_cashier to the authenticated Cashier. Routes pass it
    explicitly into service calls.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

        cashier = session_service.validate_session(token)
        if not cashier:
            return jsonify({"error": "Invalid or expired token", "code": "UNAUTHORIZED"}), 401

        g.current_cashier = cashier
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_permission(flag: str):
    """Require one of the cashier permission flags. Use after @require_auth."""
    if flag not in PERMISSION_FLAGS:
        raise ValueError(f"Unknown permission flag: {flag}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            cashier = getattr(g, "current_cashier", None)
            if cashier is None:
                return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401
            if not cashier.has_permission(flag):
                return jsonify({
                    "error": "Permission denied",
                    "code": "FORBIDDEN",
                    "required_permission": flag,
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator
