# backend/bingo_pos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bingo_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///bingo_pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Remote (Daviplata) orders above this total are refused outright (COP)
    MAX_ORDER_TOTAL = int(os.environ.get("MAX_ORDER_TOTAL", "500000"))
    ENFORCE_STOCK_ON_RESERVATION = _env_flag("ENFORCE_STOCK_ON_RESERVATION", True)
    REMOTE_ORDER_CLAIM_TTL_SECONDS = int(os.environ.get("REMOTE_ORDER_CLAIM_TTL_SECONDS", "120"))
    REMOTE_ORDER_EXPIRY_MINUTES = int(os.environ.get("REMOTE_ORDER_EXPIRY_MINUTES", "240"))

    # AI text-generation collaborator; unset URL means rule-only fraud checks
    FRAUD_CHECK_ENABLED = _env_flag("FRAUD_CHECK_ENABLED", True)
    AI_API_URL = os.environ.get("AI_API_URL")
    AI_API_KEY = os.environ.get("AI_API_KEY")
    AI_MODEL = os.environ.get("AI_MODEL", "gemini-1.5-flash-latest")
    AI_TIMEOUT_SECONDS = float(os.environ.get("AI_TIMEOUT_SECONDS", "10"))

    # Support chat sessions whose last AI reply is newer than this and unanswered
    CONVERSATION_PENDING_WINDOW_MINUTES = int(os.environ.get("CONVERSATION_PENDING_WINDOW_MINUTES", "5"))
    CONVERSATION_HISTORY_LIMIT = int(os.environ.get("CONVERSATION_HISTORY_LIMIT", "20"))

    PRESENCE_TIMEOUT_SECONDS = int(os.environ.get("PRESENCE_TIMEOUT_SECONDS", "30"))
    AUDIT_LOG_PAGE_SIZE = int(os.environ.get("AUDIT_LOG_PAGE_SIZE", "500"))

    # Front-end origins allowed to call the API from a browser
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if o.strip()
    )
