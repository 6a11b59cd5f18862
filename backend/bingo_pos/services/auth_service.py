# Overview: Password hashing and credential checks for cashier logins.

"""
Authentication Service

WHY: Every sale and reconciliation must be attributable. Cashiers log in
with their own username and password; no shared logins.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Session tokens managed separately (see session_service.py)
- Inactive cashiers cannot authenticate
"""

import bcrypt

from ..extensions import db
from ..models import Cashier
from bingo_pos.time_utils import utcnow
from .audit_service import record_audit, LOGIN, LOGIN_FAILED


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash password using bcrypt. Returned as str for storage."""
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def authenticate(username: str, password: str, ip_address: str | None = None) -> Cashier | None:
    """
    Returns the Cashier if credentials are valid, None otherwise.
    Updates last_login_at on success. Both outcomes are audited.
    """
    username = (username or "").strip().lower()
    cashier = db.session.query(Cashier).filter(
        Cashier.username == username,
        Cashier.is_active.is_(True),
    ).first()

    if not cashier or not verify_password(password or "", cashier.password_hash):
        record_audit(None, LOGIN_FAILED, f"Failed login for username '{username}'", ip_address)
        return None

    cashier.last_login_at = utcnow()
    db.session.commit()
    record_audit(cashier, LOGIN, f"{cashier.full_name} logged in", ip_address)
    return cashier
