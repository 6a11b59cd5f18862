"""
Typed failures raised by the service layer.

Every failure carries a stable code, an HTTP status and a message that can be
shown to the cashier or customer as-is. Routes translate them with to_dict().
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for expected, message-bearing service failures."""
    code = "POS_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class InvalidOrder(PosError):
    code = "INVALID_ORDER"


class OrderRejected(InvalidOrder):
    """Fraud check refused the order before it was stored."""
    code = "ORDER_REJECTED"
    status_code = 422


class InsufficientStock(InvalidOrder):
    code = "INSUFFICIENT_STOCK"
    status_code = 409


class InvalidSale(PosError):
    code = "INVALID_SALE"


class InvalidReturn(PosError):
    code = "INVALID_RETURN"


class ValidationError(PosError):
    """Bad input for catalog or staff maintenance."""
    code = "VALIDATION_ERROR"


class ConflictError(PosError):
    code = "CONFLICT"
    status_code = 409


class OrderNotFound(PosError):
    code = "ORDER_NOT_FOUND"
    status_code = 404


class ProductNotFound(PosError):
    code = "PRODUCT_NOT_FOUND"
    status_code = 404


class CashierNotFound(PosError):
    code = "CASHIER_NOT_FOUND"
    status_code = 404


class OrderAlreadyProcessed(PosError):
    code = "ORDER_ALREADY_PROCESSED"
    status_code = 409


class OrderNotEditable(PosError):
    code = "ORDER_NOT_EDITABLE"
    status_code = 409


class CodeGenerationExhausted(PosError):
    code = "CODE_GENERATION_EXHAUSTED"
    status_code = 503


class ConversationNotFound(PosError):
    code = "CONVERSATION_NOT_FOUND"
    status_code = 404


class AIUnavailable(PosError):
    """The AI service is not configured or did not answer usably."""
    code = "AI_UNAVAILABLE"
    status_code = 503


class Unauthorized(PosError):
    code = "UNAUTHORIZED"
    status_code = 401


class Forbidden(PosError):
    code = "FORBIDDEN"
    status_code = 403


class StorageFailure(PosError):
    """Wraps an underlying store error; the original text stays in details."""
    code = "STORAGE_FAILURE"
    status_code = 500

    def __init__(self, message: str, original: Exception | None = None, details: dict | None = None):
        details = dict(details or {})
        if original is not None:
            details.setdefault("original_error", str(original))
        super().__init__(message, details)
        self.original = original


class InconsistentState(PosError):
    """
    The sale was committed but the remote order could not be flipped.

    Money and inventory already moved; this is never compensated automatically.
    """
    code = "INCONSISTENT_STATE"
    status_code = 500

    def __init__(self, reference_code: str, sale_id: int, reason: str | None = None):
        message = (
            f"Payment for order {reference_code} was taken and recorded as sale {sale_id}, "
            "but the order could not be marked as completed. Please notify an administrator "
            "for manual follow-up."
        )
        details = {"reference_code": reference_code, "sale_id": sale_id}
        if reason:
            details["reason"] = reason
        super().__init__(message, details)
        self.reference_code = reference_code
        self.sale_id = sale_id
