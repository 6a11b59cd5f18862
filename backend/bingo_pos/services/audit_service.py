# Overview: Service-layer operations for the audit log; append-only, best-effort writes.

"""
Audit Log Service

Invariants:
- Append-only. Entries are never updated or deleted.
- record_audit() never raises. A failed audit write is logged and dropped;
  it must not fail or roll back the operation being audited.
- Call it after the audited unit of work has been committed or rolled back,
  since it commits the session itself.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLogEntry, Cashier

# Action tags
SALE_RECORDED = "SALE_RECORDED"
SALE_FAILED = "SALE_FAILED"
RETURN_RECORDED = "RETURN_RECORDED"
RETURN_FAILED = "RETURN_FAILED"
REMOTE_ORDER_COMPLETED = "REMOTE_ORDER_COMPLETED"
REMOTE_ORDER_RECONCILIATION_FAILED = "REMOTE_ORDER_RECONCILIATION_FAILED"
REMOTE_ORDER_CANCELLED = "REMOTE_ORDER_CANCELLED"
REMOTE_ORDERS_EXPIRED = "REMOTE_ORDERS_EXPIRED"
INCONSISTENT_STATE = "INCONSISTENT_STATE"
AI_POST_SALE_ALERT = "AI_POST_SALE_ALERT"
AI_CHECK_ERROR = "AI_CHECK_ERROR"
CHAT_INTERVENTION = "CHAT_INTERVENTION"
PRODUCT_CREATED = "PRODUCT_CREATED"
PRODUCT_UPDATED = "PRODUCT_UPDATED"
CASHIER_CREATED = "CASHIER_CREATED"
CASHIER_CREATE_FAILED = "CASHIER_CREATE_FAILED"
CASHIER_UPDATED = "CASHIER_UPDATED"
CASHIER_UPDATE_FAILED = "CASHIER_UPDATE_FAILED"
LOGIN = "LOGIN"
LOGIN_FAILED = "LOGIN_FAILED"


def record_audit(
    cashier: Cashier | None,
    action: str,
    description: str,
    ip_address: str | None = None,
) -> AuditLogEntry | None:
    """
    Append an audit entry. Returns the entry, or None if the write failed.

    cashier may be None for system-initiated actions (CLI, expiry jobs).
    """
    entry = AuditLogEntry(
        cashier_id=cashier.id if cashier is not None else None,
        cashier_name=cashier.full_name if cashier is not None else "system",
        action=action,
        description=description,
        ip_address=ip_address,
    )
    try:
        db.session.add(entry)
        db.session.commit()
        return entry
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning(
            "Failed to write audit entry %s: %s", action, description, exc_info=True
        )
        return None


def list_audit_logs(limit: int | None = None) -> list[AuditLogEntry]:
    """Newest-first audit entries, capped at AUDIT_LOG_PAGE_SIZE by default."""
    if limit is None:
        limit = current_app.config.get("AUDIT_LOG_PAGE_SIZE", 500)
    return (
        db.session.query(AuditLogEntry)
        .order_by(AuditLogEntry.occurred_at.desc(), AuditLogEntry.id.desc())
        .limit(limit)
        .all()
    )
