"""Ledger enumerations.

Values are part of the external contract and are stored by name.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ReturnStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RefundStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RefundType(str, Enum):
    FULL = "FULL"
    PARTIAL = "PARTIAL"
    SHIPPING_ONLY = "SHIPPING_ONLY"
    TAX_ONLY = "TAX_ONLY"


class TimelineEvent(str, Enum):
    """Audit events. Add a new member per new operation."""
    STATUS_CHANGED = "STATUS_CHANGED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURN_APPROVED = "RETURN_APPROVED"
    RETURN_REJECTED = "RETURN_REJECTED"
    REFUND_INITIATED = "REFUND_INITIATED"
    REFUND_COMPLETED = "REFUND_COMPLETED"
    REFUND_FAILED = "REFUND_FAILED"
    DETAILS_UPDATED = "DETAILS_UPDATED"


class ActorType(str, Enum):
    SYSTEM = "SYSTEM"
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"


# Refunds in these states count against the order total.
ACTIVE_REFUND_STATUSES = frozenset({RefundStatus.PROCESSING, RefundStatus.COMPLETED})
