# Overview: Six-digit reference codes for remote orders, unique across all orders ever created.

from __future__ import annotations

import random
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..errors import CodeGenerationExhausted, StorageFailure
from ..models import RemoteOrder


MAX_ATTEMPTS = 10
CODE_MIN = 100000
CODE_MAX = 999999

_rng = random.SystemRandom()


def draw_code(rng=None) -> str:
    """Uniformly random 6-digit code (100000-999999)."""
    return str((rng or _rng).randint(CODE_MIN, CODE_MAX))


def code_exists(code: str) -> bool:
    """True if any remote order (any status) already uses code."""
    try:
        return db.session.query(RemoteOrder.id).filter_by(reference_code=code).first() is not None
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Could not verify the reference code", original=exc) from exc


def generate_reference_code(
    exists: Callable[[str], bool] = code_exists,
    rng=None,
    max_attempts: int = MAX_ATTEMPTS,
) -> str:
    """
    Draw codes until one is unused, at most max_attempts times.

    Codes are never reused, even for completed or cancelled orders.
    Raises CodeGenerationExhausted when every draw collided.
    """
    for _ in range(max_attempts):
        code = draw_code(rng)
        if not exists(code):
            return code

    raise CodeGenerationExhausted(
        "Could not generate a unique reference code. Please try again.",
        details={"attempts": max_attempts},
    )
