from __future__ import annotations

from ..extensions import db
from bingo_pos.time_utils import to_utc_z, utcnow

SENDER_USER = "user"
SENDER_AI = "ai"
SENDER_ADMIN = "admin"
SENDERS = (SENDER_USER, SENDER_AI, SENDER_ADMIN)


class ConversationMessage(db.Model):
    """
    One message of a customer support chat on the ordering page.

    Append-only. A session is the set of messages sharing session_id; the
    customer document/phone are copied onto every message of the session.
    """
    __tablename__ = "daviplata_conversations"
    __table_args__ = (
        db.Index("ix_daviplata_conversations_session_created", "session_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), nullable=False, index=True)
    sender = db.Column(db.String(8), nullable=False)  # user / ai / admin
    message = db.Column(db.Text, nullable=False)

    customer_document = db.Column(db.String(32), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "sender": self.sender,
            "message": self.message,
            "customer_document": self.customer_document,
            "customer_phone": self.customer_phone,
            "created_at": to_utc_z(self.created_at),
        }
