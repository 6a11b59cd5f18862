# Overview: Transaction risk checks for remote orders and post-commit sale review.

"""
Fraud Check Service

Two uses:
- Before a remote order is stored: an unsafe verdict rejects the order. If
  the AI service itself fails, the order goes through (fail open).
- After a cashier sale is committed, as a dispatched side effect: an unsafe
  verdict only produces an audit entry. Sales are never reversed.

Hard rules are evaluated locally first; the AI service is only consulted when
they pass and an endpoint is configured.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Cashier
from . import ai_client
from .ai_client import AIServiceError
from .audit_service import record_audit, AI_POST_SALE_ALERT, AI_CHECK_ERROR


VERDICT_SCHEMA = {
    "type": "object",
    "properties": {
        "is_safe": {"type": "boolean"},
        "reason": {"type": "string"},
    },
    "required": ["is_safe", "reason"],
}


@dataclass(frozen=True)
class SecurityVerdict:
    is_safe: bool
    reason: str = ""


def _build_prompt(total: int, document: str | None, phone: str | None) -> str:
    return (
        "You review purchases for a school bingo fundraiser. Orders come either from a "
        "cashier (no customer data) or from a parent paying remotely (document and phone "
        "expected). Flag totals that look implausible for a family, and remote orders with "
        "only part of the customer data. Do not flag cashier sales for missing customer data.\n"
        f"Order total: {total} COP\n"
        f"Customer document: {document or 'not provided (cashier sale)'}\n"
        f"Customer phone: {phone or 'not provided (cashier sale)'}\n"
        'Answer only with JSON: {"is_safe": bool, "reason": str}.'
    )


def apply_hard_rules(total: int) -> SecurityVerdict | None:
    """Local checks; returns an unsafe verdict, or None when they pass."""
    if total <= 0:
        return SecurityVerdict(False, "The order total cannot be zero or negative.")
    limit = current_app.config.get("MAX_ORDER_TOTAL", 500000)
    if total > limit:
        return SecurityVerdict(False, f"The order total ({total}) exceeds the security limit of {limit} COP.")
    return None


def check_transaction(total: int, customer_info: dict | None = None) -> SecurityVerdict:
    """
    Assess a transaction. Raises AIServiceError if the AI service fails;
    callers decide whether that fails open.
    """
    verdict = apply_hard_rules(total)
    if verdict is not None:
        return verdict

    client = ai_client.get_client()
    if client is None:
        return SecurityVerdict(True)

    info = customer_info or {}
    result = client.generate_json(
        _build_prompt(total, info.get("document"), info.get("phone")),
        schema=VERDICT_SCHEMA,
    )
    if not isinstance(result.get("is_safe"), bool):
        raise AIServiceError("AI verdict is missing is_safe")
    return SecurityVerdict(result["is_safe"], str(result.get("reason") or ""))


def precheck_remote_order(total: int, customer_info: dict | None) -> SecurityVerdict:
    """Verdict for a new remote order. AI failures fail open."""
    if not current_app.config.get("FRAUD_CHECK_ENABLED", True):
        return apply_hard_rules(total) or SecurityVerdict(True)
    try:
        return check_transaction(total, customer_info)
    except AIServiceError:
        current_app.logger.warning("AI security check failed; accepting order", exc_info=True)
        return SecurityVerdict(True)


def review_committed_sale(sale_id: int, subtotal: int, cashier_id: int) -> None:
    """
    Post-commit review of a cashier sale. Only ever writes audit entries.

    Runs as a dispatched side effect, so it reloads the cashier by id.
    """
    cashier = db.session.get(Cashier, cashier_id)
    try:
        verdict = check_transaction(subtotal)
    except AIServiceError as exc:
        record_audit(cashier, AI_CHECK_ERROR, f"AI check for sale {sale_id} failed. Error: {exc}", "N/A")
        return

    if not verdict.is_safe:
        record_audit(cashier, AI_POST_SALE_ALERT, f"Sale {sale_id} flagged by AI. Reason: {verdict.reason}", "N/A")
