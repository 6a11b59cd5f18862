# Overview: Bearer-token issue, validation and revocation for cashier sessions.

"""
Session Token Management Service

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- 12-hour absolute timeout (one event day)
- Revocable on logout
"""

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..models import Cashier, SessionToken
from bingo_pos.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=12)


def generate_token() -> str:
    """64-character hex string sent to the client (never stored)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 is enough here: tokens are already high-entropy, unlike passwords.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(
    cashier: Cashier,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        cashier_id=cashier.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> Cashier | None:
    """
    Returns the Cashier for a live token, None if the token is unknown,
    expired, revoked, or belongs to a deactivated cashier.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    cashier = session.cashier
    if not cashier or not cashier.is_active:
        return None
    return cashier


def revoke_session(token: str) -> bool:
    """Revoke a session (logout). Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
