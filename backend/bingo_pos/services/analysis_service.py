# Overview: AI-written analysis of the event dashboard for administrators.

"""
Dashboard Analysis

Feeds the dashboard totals, per-product sales and the latest sales and
returns to the AI collaborator and hands back its Markdown answer. With no
question it asks for a general report; with a question it asks for a direct
answer. Nothing is stored.
"""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import AIUnavailable, StorageFailure, ValidationError
from ..models import Cashier, Return, Sale, SaleLine
from . import ai_client, reporting_service
from .ai_client import AIServiceError
from .conversation_service import require_ai_access

RECENT_LIMIT = 5
MAX_QUESTION_LENGTH = 1000

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {"analysis": {"type": "string"}},
    "required": ["analysis"],
}

REPORT_INSTRUCTION = (
    "Write a short report in Markdown with these sections: executive summary (net revenue, "
    "best product, best till); product performance (best and weakest sellers, how concentrated "
    "sales are); tills (compare them, average ticket for the busiest); payment methods and "
    "returns (cash vs Daviplata, weight of returns); notable patterns; two or three concrete "
    "recommendations."
)


def _recent_sales() -> list[Sale]:
    return (
        db.session.query(Sale)
        .options(selectinload(Sale.lines).selectinload(SaleLine.product))
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )


def _recent_returns() -> list[Return]:
    return (
        db.session.query(Return)
        .options(selectinload(Return.product))
        .order_by(Return.created_at.desc(), Return.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )


def build_prompt(question: str | None) -> str:
    totals = reporting_service.dashboard()
    try:
        products = reporting_service.sales_by_product()
        sales = _recent_sales()
        returns = _recent_returns()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not load the data for the analysis", original=exc) from exc

    lines = [
        "You are a data analyst for a school bingo fundraiser's point of sale. Amounts are COP.",
        f"Net revenue: {totals['total_revenue']}",
        f"Cash (net of returns): {totals['total_cash']}",
        f"Daviplata: {totals['total_daviplata']}",
        f"Transactions: {totals['total_sales']}",
        f"Returns: {totals['total_returns']}",
        "Sales by till:",
    ]
    lines += [f"  - {c['name']}: {c['total']}" for c in totals["sales_by_cashier"]] or ["  (none)"]
    lines.append("Sales by product:")
    lines += [
        f"  - {p['product_name']}: {p['units_sold']} units, {p['revenue']} revenue" for p in products
    ] or ["  (none)"]
    lines.append(f"Latest {RECENT_LIMIT} sales:")
    lines += [
        f"  - Sale {s.id}: {s.subtotal} ("
        + ", ".join(f"{l.quantity}x {l.product.name if l.product else l.product_id}" for l in s.lines)
        + ")"
        for s in sales
    ] or ["  (none)"]
    lines.append(f"Latest {RECENT_LIMIT} returns:")
    lines += [
        f"  - Return {r.id}: {r.quantity}x {r.product.name if r.product else r.product_id}, {r.refund_amount}"
        for r in returns
    ] or ["  (none)"]

    if question:
        lines.append(f'Answer this question clearly and briefly in Markdown: "{question}"')
    else:
        lines.append(REPORT_INSTRUCTION)
    lines.append('Answer only with JSON: {"analysis": str}.')
    return "\n".join(lines)


def dashboard_analysis(requester: Cashier | None, question: Any = None) -> str:
    """
    Markdown analysis of the event so far.

    Raises:
        Forbidden: requester lacks can_access_ai_analysis
        ValidationError: question is not text or too long
        AIUnavailable: no AI endpoint, or it failed
    """
    require_ai_access(requester)
    if question is not None and not isinstance(question, str):
        raise ValidationError("question must be text")
    question = (question or "").strip() or None
    if question and len(question) > MAX_QUESTION_LENGTH:
        raise ValidationError(f"The question is too long (at most {MAX_QUESTION_LENGTH} characters).")

    client = ai_client.get_client()
    if client is None:
        raise AIUnavailable("AI analysis is not configured.")

    prompt = build_prompt(question)
    try:
        result = client.generate_json(prompt, schema=ANALYSIS_SCHEMA)
    except AIServiceError as exc:
        current_app.logger.warning("Dashboard analysis failed", exc_info=True)
        raise AIUnavailable(f"The AI service could not produce an analysis: {exc}") from exc

    analysis = result.get("analysis")
    if not isinstance(analysis, str) or not analysis.strip():
        raise AIUnavailable("The AI service returned an empty analysis.")
    return analysis.strip()
