"""Ledger error taxonomy.

Every service operation either returns the entity it changed or raises one of
these. Each error carries an HTTP status, a stable code and structured context
so callers can render an actionable message.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.context}


# ── Not found ────────────────────────────────────────────
class NotFoundError(LedgerError):
    status_code = 404
    code = "not_found"


class OrderNotFound(NotFoundError):
    code = "order_not_found"

    def __init__(self, order_id):
        super().__init__(f"Order not found: {order_id}", order_id=str(order_id))


class ReturnNotFound(NotFoundError):
    code = "return_not_found"

    def __init__(self, return_id):
        super().__init__(f"Return request not found: {return_id}", return_id=str(return_id))


class RefundNotFound(NotFoundError):
    code = "refund_not_found"

    def __init__(self, refund_id):
        super().__init__(f"Refund not found: {refund_id}", refund_id=str(refund_id))


class ProductNotFound(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id):
        super().__init__(f"Product not found: {product_id}", product_id=str(product_id))


# ── State ────────────────────────────────────────────────
class InvalidStateTransition(LedgerError):
    status_code = 409
    code = "invalid_state_transition"


class NoStatusChange(InvalidStateTransition):
    code = "no_status_change"


class InvalidStateForReturn(LedgerError):
    status_code = 409
    code = "invalid_state_for_return"


class InvalidReturnState(LedgerError):
    status_code = 409
    code = "invalid_return_state"


class InvalidRefundState(LedgerError):
    status_code = 409
    code = "invalid_refund_state"


# ── Validation ───────────────────────────────────────────
class ValidationError(LedgerError, ValueError):
    status_code = 422
    code = "validation_error"


class ItemNotFound(ValidationError):
    code = "item_not_found"


class QuantityExceedsOrdered(ValidationError):
    code = "quantity_exceeds_ordered"


class RefundExceedsOrderTotal(ValidationError):
    code = "refund_exceeds_order_total"


class ReturnWindowExpired(ValidationError):
    code = "return_window_expired"


# ── Storage ──────────────────────────────────────────────
class ConcurrencyConflict(LedgerError):
    status_code = 409
    code = "concurrency_conflict"


class ReferenceNumberExhausted(LedgerError):
    status_code = 503
    code = "reference_number_exhausted"
