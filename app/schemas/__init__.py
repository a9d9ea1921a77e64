"""Pydantic schemas for the ledger API."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.enums import (
    ActorType, OrderStatus, RefundStatus, RefundType, ReturnStatus, TimelineEvent,
)


# ── Order ────────────────────────────────────────────────
class OrderItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(Decimal("0"), ge=0)


class OrderCreate(BaseModel):
    customer_id: str = Field(..., min_length=1)
    items: list[OrderItemCreate] = Field(..., min_length=1)
    total: Decimal = Field(..., ge=0)
    currency: Optional[str] = None
    notes: str = ""


class OrderUpdate(BaseModel):
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    customer_notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None


class OrderCancel(BaseModel):
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None


class OrderItemOut(BaseModel):
    id: UUID
    product_id: UUID
    quantity: int
    price: Decimal

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: UUID
    order_number: str
    customer_id: str
    status: OrderStatus
    total: Decimal
    currency: str
    notes: Optional[str]
    customer_notes: Optional[str]
    tracking_number: Optional[str]
    estimated_delivery: Optional[datetime]
    actual_delivery: Optional[datetime]
    cancellation_reason: Optional[str]
    cancellation_notes: Optional[str]
    cancelled_at: Optional[datetime]
    cancelled_by: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Returns ──────────────────────────────────────────────
class ReturnItemCreate(BaseModel):
    order_item_id: UUID
    quantity: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)
    condition: Optional[str] = None


class ReturnCreate(BaseModel):
    items: list[ReturnItemCreate] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    description: Optional[str] = None
    images: list[str] = Field(default_factory=list)


class ReturnReview(BaseModel):
    approved: bool
    review_notes: Optional[str] = None


class ReturnItemOut(BaseModel):
    id: UUID
    order_item_id: UUID
    quantity: int
    reason: str
    condition: Optional[str]

    model_config = {"from_attributes": True}


class ReturnOut(BaseModel):
    id: UUID
    order_id: UUID
    return_number: str
    status: ReturnStatus
    reason: str
    description: Optional[str]
    images: list[str]
    requested_by: str
    reviewed_by: Optional[str]
    reviewed_at: Optional[datetime]
    review_notes: Optional[str]
    items: list[ReturnItemOut]
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Refunds ──────────────────────────────────────────────
class RefundCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: RefundType
    reason: str = Field(..., min_length=1)
    description: Optional[str] = None
    return_id: Optional[UUID] = None
    idempotency_key: Optional[str] = Field(None, max_length=200)


class RefundSettle(BaseModel):
    succeeded: bool


class RefundOut(BaseModel):
    id: UUID
    order_id: UUID
    return_id: Optional[UUID]
    refund_number: str
    amount: Decimal
    type: RefundType
    status: RefundStatus
    reason: str
    description: Optional[str]
    processed_by: str
    processed_at: Optional[datetime]
    settled_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class RefundSummaryOut(BaseModel):
    order_total: Decimal
    total_refunded: Decimal
    refundable: Decimal
    currency: str

    model_config = {"from_attributes": True}


# ── Timeline ─────────────────────────────────────────────
class TimelineEventOut(BaseModel):
    id: int
    order_id: UUID
    event: TimelineEvent
    title: str
    description: Optional[str]
    actor_type: ActorType
    actor_id: Optional[str]
    actor_name: Optional[str]
    metadata: Optional[dict[str, Any]] = Field(None, validation_alias="payload")
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderDetailOut(OrderOut):
    items: list[OrderItemOut]
    returns: list[ReturnOut]
    refunds: list[RefundOut]
    timeline: list[TimelineEventOut]
