from __future__ import annotations

from ..extensions import db
from bingo_pos.time_utils import to_utc_z, utcnow

# Permission flags stored as boolean columns on Cashier
PERMISSION_FLAGS = (
    "can_access_dashboard",
    "can_access_ai_analysis",
    "can_manage_products",
    "can_manage_cashiers",
    "can_process_returns",
    "can_verify_remote_orders",
    "can_view_audit_log",
)


class Cashier(db.Model):
    """
    Staff account for sales, returns and remote-order reconciliation.

    WHY: Every sale, return and reconciliation must be attributable to the
    cashier who performed it. No shared logins.
    """
    __tablename__ = "cashiers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    can_access_dashboard = db.Column(db.Boolean, nullable=False, default=False)
    can_access_ai_analysis = db.Column(db.Boolean, nullable=False, default=False)
    can_manage_products = db.Column(db.Boolean, nullable=False, default=False)
    can_manage_cashiers = db.Column(db.Boolean, nullable=False, default=False)
    can_process_returns = db.Column(db.Boolean, nullable=False, default=False)
    can_verify_remote_orders = db.Column(db.Boolean, nullable=False, default=False)
    can_view_audit_log = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def has_permission(self, flag: str) -> bool:
        if flag not in PERMISSION_FLAGS:
            return False
        return bool(self.is_active and getattr(self, flag))

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }
        for flag in PERMISSION_FLAGS:
            data[flag] = bool(getattr(self, flag))
        return data


class SessionToken(db.Model):
    """
    Bearer token issued at login.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute timeout only; revocable on logout
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_cashier_active", "cashier_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("cashiers.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    cashier = db.relationship("Cashier", backref=db.backref("sessions", lazy=True))
