# Overview: Customer support chat on the ordering page, with staff intervention.

"""
Conversation Service

Parents ask the assistant questions from the ordering page. Every message
(parent, assistant, staff) is stored so staff holding can_access_ai_analysis
can read the chats and step in.

- The parent's message is stored before the AI is called, so a failed or
  unconfigured AI still leaves the question visible to staff.
- A staff reply copies the customer document/phone from the session's last
  message and is audited as CHAT_INTERVENTION.
- A session is "pending" when its last assistant reply is recent and the
  parent has not written since.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import AIUnavailable, ConversationNotFound, Forbidden, StorageFailure, ValidationError
from ..models import Cashier, ConversationMessage
from ..models.conversations import SENDER_ADMIN, SENDER_AI, SENDER_USER
from bingo_pos.time_utils import utcnow
from . import ai_client
from .ai_client import AIServiceError
from .audit_service import record_audit, CHAT_INTERVENTION
from .sales_service import require_cashier


MAX_SESSION_ID_LENGTH = 64
MAX_MESSAGE_LENGTH = 2000

ANSWER_SCHEMA = {
    "type": "object",
    "properties": {"answer": {"type": "string"}},
    "required": ["answer"],
}

_SPEAKERS = {SENDER_USER: "Parent", SENDER_AI: "Assistant", SENDER_ADMIN: "Staff"}


def require_ai_access(requester: Cashier | None) -> Cashier:
    requester = require_cashier(requester)
    if not requester.has_permission("can_access_ai_analysis"):
        raise Forbidden("Unauthorized action.")
    return requester


def _clean_session_id(session_id: Any) -> str:
    value = session_id.strip() if isinstance(session_id, str) else ""
    if not value or len(value) > MAX_SESSION_ID_LENGTH:
        raise ValidationError(f"session_id is required (at most {MAX_SESSION_ID_LENGTH} characters)")
    return value


def _clean_message(message: Any, label: str = "message") -> str:
    value = message.strip() if isinstance(message, str) else ""
    if not value:
        raise ValidationError(f"The {label} cannot be empty.")
    if len(value) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"The {label} is too long (at most {MAX_MESSAGE_LENGTH} characters).")
    return value


def _last_message(session_id: str) -> ConversationMessage | None:
    return (
        db.session.query(ConversationMessage)
        .filter(ConversationMessage.session_id == session_id)
        .order_by(ConversationMessage.created_at.desc(), ConversationMessage.id.desc())
        .first()
    )


def _history(session_id: str) -> list[ConversationMessage]:
    limit = current_app.config.get("CONVERSATION_HISTORY_LIMIT", 20)
    rows = (
        db.session.query(ConversationMessage)
        .filter(ConversationMessage.session_id == session_id)
        .order_by(ConversationMessage.created_at.desc(), ConversationMessage.id.desc())
        .limit(limit)
        .all()
    )
    rows.reverse()
    return rows


def _store(session_id: str, sender: str, message: str, document: str | None, phone: str | None) -> ConversationMessage:
    row = ConversationMessage(
        session_id=session_id,
        sender=sender,
        message=message,
        customer_document=document,
        customer_phone=phone,
        created_at=utcnow(),
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not save the chat message", original=exc) from exc
    return row


def _build_prompt(history: list[ConversationMessage], question: str, document: str | None, phone: str | None) -> str:
    lines = [f"{_SPEAKERS.get(m.sender, m.sender)}: {m.message}" for m in history]
    return (
        "You are the assistant on the ordering page of a school bingo fundraiser. You help "
        "parents pre-order with Daviplata: pick products, enter document and Daviplata number, "
        "pay the exact amount, then show the six-digit reference code at a till. Products marked "
        "sold out cannot be bought; pending orders can still be edited.\n"
        "Never share sales figures, revenue, best sellers or cashier performance. Keep answers "
        "short and friendly. A Staff message in the history is authoritative.\n"
        f"Customer document: {document or 'not provided'}\n"
        f"Customer phone: {phone or 'not provided'}\n"
        "Conversation so far:\n"
        + ("\n".join(lines) if lines else "(none)")
        + f"\nNew question from the parent: {question}\n"
        'Answer only with JSON: {"answer": str}.'
    )


def ask_assistant(session_id: Any, question: Any, customer_info: dict | None = None) -> ConversationMessage:
    """
    Store a parent's question and the assistant's answer. Returns the answer row.

    Raises:
        ValidationError: missing session id or empty question
        AIUnavailable: no AI endpoint, or it failed (the question stays stored)
        StorageFailure: the store rejected a message
    """
    session_id = _clean_session_id(session_id)
    question = _clean_message(question, "question")

    info = customer_info if isinstance(customer_info, dict) else {}
    document = str(info.get("document") or "").strip() or None
    phone = str(info.get("phone") or "").strip() or None
    if document is None and phone is None:
        last = _last_message(session_id)
        if last is not None:
            document, phone = last.customer_document, last.customer_phone

    history = _history(session_id)
    _store(session_id, SENDER_USER, question, document, phone)

    client = ai_client.get_client()
    if client is None:
        raise AIUnavailable("The assistant is not available right now. A staff member will read your message.")

    try:
        result = client.generate_json(_build_prompt(history, question, document, phone), schema=ANSWER_SCHEMA)
    except AIServiceError as exc:
        current_app.logger.warning("Assistant reply failed for chat %s", session_id, exc_info=True)
        raise AIUnavailable("The assistant could not answer. A staff member will read your message.") from exc

    answer = result.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        raise AIUnavailable("The assistant could not answer. A staff member will read your message.")

    return _store(session_id, SENDER_AI, answer.strip(), document, phone)


def list_conversations(requester: Cashier | None) -> dict[str, list[dict]]:
    """Every message, oldest first, grouped by session in order of first message."""
    require_ai_access(requester)
    rows = (
        db.session.query(ConversationMessage)
        .order_by(ConversationMessage.created_at.asc(), ConversationMessage.id.asc())
        .all()
    )
    grouped: dict[str, list[dict]] = {}
    for row in rows:
        grouped.setdefault(row.session_id, []).append(row.to_dict())
    return grouped


def send_admin_message(requester: Cashier | None, session_id: Any, message: Any) -> ConversationMessage:
    requester = require_ai_access(requester)
    session_id = _clean_session_id(session_id)
    message = _clean_message(message)

    last = _last_message(session_id)
    if last is None:
        raise ConversationNotFound(f"Chat {session_id} was not found.", details={"session_id": session_id})

    row = _store(session_id, SENDER_ADMIN, message, last.customer_document, last.customer_phone)
    record_audit(requester, CHAT_INTERVENTION, f"Admin {requester.username} stepped into chat {session_id}.")
    return row


def count_pending(requester: Cashier | None, now: datetime | None = None) -> int:
    require_ai_access(requester)
    now = now or utcnow()
    window = timedelta(minutes=current_app.config.get("CONVERSATION_PENDING_WINDOW_MINUTES", 5))

    rows = (
        db.session.query(ConversationMessage.session_id, ConversationMessage.sender, ConversationMessage.created_at)
        .filter(ConversationMessage.sender.in_((SENDER_USER, SENDER_AI)))
        .all()
    )
    last_ai: dict[str, datetime] = {}
    user_times = defaultdict(list)
    for session_id, sender, created_at in rows:
        if sender == SENDER_AI:
            if session_id not in last_ai or created_at > last_ai[session_id]:
                last_ai[session_id] = created_at
        else:
            user_times[session_id].append(created_at)

    pending = 0
    for session_id, replied_at in last_ai.items():
        if replied_at <= now - window:
            continue
        if any(t > replied_at for t in user_times[session_id]):
            continue
        pending += 1
    return pending
