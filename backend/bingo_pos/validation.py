from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text

from .errors import ValidationError
from .models import Cashier, Product
from .models.cashiers import PERMISSION_FLAGS


# Largest price accepted for a single article (COP)
MAX_PRICE = 10_000_000
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may write, and which a create must include."""
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "price", "image_url", "is_active", "visible_to_customers", "initial_stock"}),
    required_on_create=frozenset({"name", "price", "initial_stock"}),
)

CASHIER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"username", "full_name", "is_active", *PERMISSION_FLAGS}),
    required_on_create=frozenset({"username", "full_name"}),
)


def _as_int(key: str, value: Any) -> int:
    # JSON numbers only; 2.0 is fine, 2.5 and "2" are not
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a whole number")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{key} must be a whole number")
    return value


def _as_text(column, value: Any) -> str:
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{column.key} must be text")
    text = str(value).strip()
    if not text and not column.nullable:
        raise ValidationError(f"{column.key} cannot be blank")
    limit = getattr(column.type, "length", None)
    if limit and len(text) > limit:
        raise ValidationError(f"{column.key} is longer than {limit} characters")
    return text


def _clean(column, value: Any) -> Any:
    if value is None:
        if not column.nullable:
            raise ValidationError(f"{column.key} is required")
        return None
    if isinstance(column.type, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{column.key} must be true or false")
        return value
    if isinstance(column.type, Integer):
        return _as_int(column.key, value)
    if isinstance(column.type, (String, Text)):
        return _as_text(column, value)
    return value


def validate_payload(*, model, payload: Any, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Check a JSON body against the model's columns and the policy allowlist.

    Returns only the cleaned, writable fields. With partial=True (updates)
    missing fields are left alone; otherwise required_on_create must all be
    present. Unknown or read-only keys are refused rather than ignored.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    refused = sorted(k for k in payload if k not in policy.writable_fields)
    if refused:
        raise ValidationError(f"Field not allowed: {', '.join(refused)}")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    return {key: _clean(columns[key], value) for key, value in payload.items()}


def validate_product_payload(payload: dict, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)

    if "name" in patch and len(patch["name"]) < 3:
        raise ValidationError("Article name must be at least 3 characters long.")
    if "price" in patch:
        if patch["price"] <= 0:
            raise ValidationError("Price must be a positive number.")
        if patch["price"] > MAX_PRICE:
            raise ValidationError(f"Price cannot exceed {MAX_PRICE}")
    if "initial_stock" in patch and patch["initial_stock"] < 0:
        raise ValidationError("Initial stock cannot be negative.")
    if patch.get("image_url") == "":
        patch["image_url"] = None
    return patch


def validate_cashier_payload(payload: dict, partial: bool) -> tuple[dict, str | None]:
    """Returns (patch, password). Password is optional on update."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    password = payload.pop("password", None)

    patch = validate_payload(model=Cashier, payload=payload, policy=CASHIER_POLICY, partial=partial)
    if "username" in patch:
        patch["username"] = patch["username"].lower()

    if password is not None and not isinstance(password, str):
        raise ValidationError("Password must be text")
    if password == "":
        password = None
    if not partial and password is None:
        raise ValidationError("Missing required fields: password")
    if password is not None and len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    return patch, password
