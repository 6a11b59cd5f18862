"""
Cashier Management

Administrators create cashiers, edit their permission flags and reset
passwords. Cashiers are deactivated, never deleted, so sales stay
attributable.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..errors import CashierNotFound, ConflictError, Forbidden, StorageFailure, ValidationError
from ..models import Cashier
from ..validation import validate_cashier_payload
from .auth_service import hash_password
from .sales_service import require_cashier
from .audit_service import (
    record_audit,
    CASHIER_CREATED,
    CASHIER_CREATE_FAILED,
    CASHIER_UPDATED,
    CASHIER_UPDATE_FAILED,
)


def _require_admin(requester: Cashier | None) -> Cashier:
    requester = require_cashier(requester)
    if not requester.has_permission("can_manage_cashiers"):
        raise Forbidden("Unauthorized action.")
    return requester


def list_cashiers() -> list[Cashier]:
    return db.session.query(Cashier).order_by(Cashier.full_name.asc(), Cashier.id.asc()).all()


def _commit(requester: Cashier, failed_action: str, label: str):
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        record_audit(requester, failed_action, f"{label}: username already exists")
        raise ConflictError("Username already exists") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        record_audit(requester, failed_action, f"{label}: {exc}")
        raise StorageFailure("Could not save the cashier", original=exc) from exc


def create_cashier(requester: Cashier | None, payload: dict) -> Cashier:
    """
    Raises:
        Forbidden: requester may not manage cashiers
        ValidationError: bad payload or short password
        ConflictError: username taken
    """
    requester = _require_admin(requester)
    try:
        patch, password = validate_cashier_payload(payload, partial=False)
    except ValidationError as exc:
        record_audit(requester, CASHIER_CREATE_FAILED, f"Create cashier rejected: {exc.message}")
        raise

    if db.session.query(Cashier.id).filter_by(username=patch["username"]).first():
        record_audit(requester, CASHIER_CREATE_FAILED, f"Username '{patch['username']}' already exists")
        raise ConflictError("Username already exists", details={"username": patch["username"]})

    cashier = Cashier(password_hash=hash_password(password), **patch)
    db.session.add(cashier)
    _commit(requester, CASHIER_CREATE_FAILED, f"Create cashier {patch['username']}")

    record_audit(requester, CASHIER_CREATED, f"Cashier created: {cashier.full_name} ({cashier.username})")
    return cashier


def update_cashier(requester: Cashier | None, cashier_id: int, payload: dict) -> Cashier:
    """Partial update. A non-empty password resets it."""
    requester = _require_admin(requester)
    cashier = db.session.get(Cashier, cashier_id)
    if not cashier:
        raise CashierNotFound("Cashier not found", details={"cashier_id": cashier_id})

    try:
        patch, password = validate_cashier_payload(payload, partial=True)
    except ValidationError as exc:
        record_audit(requester, CASHIER_UPDATE_FAILED, f"Update cashier {cashier_id} rejected: {exc.message}")
        raise

    for key, value in patch.items():
        setattr(cashier, key, value)
    if password:
        cashier.password_hash = hash_password(password)
    _commit(requester, CASHIER_UPDATE_FAILED, f"Update cashier {cashier_id}")

    record_audit(requester, CASHIER_UPDATED, f"Cashier updated: {cashier.full_name} ({cashier.username})")
    return cashier
