"""Ledger data models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.enums import (
    ACTIVE_REFUND_STATUSES, ActorType, OrderStatus, RefundStatus, RefundType,
    ReturnStatus, TimelineEvent,
)


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Product(Base):
    """Catalog product. Only the stock counter is touched here."""
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(500), default="")
    stock = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Order(Base):
    """Customer order, root of the ledger."""
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    customer_id = Column(String(100), nullable=False, index=True)
    status = Column(Enum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PENDING)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), default="AED")
    notes = Column(Text, default="")
    customer_notes = Column(Text, default="")
    tracking_number = Column(String(200), default="")
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    actual_delivery = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_notes = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.position")
    returns = relationship("OrderReturn", back_populates="order", order_by="OrderReturn.created_at")
    refunds = relationship("OrderRefund", back_populates="order", order_by="OrderRefund.created_at")
    timeline = relationship("OrderTimeline", back_populates="order", order_by="OrderTimeline.id")

    __mapper_args__ = {"version_id_col": version}


class OrderItem(Base):
    """One product line; quantity and price are frozen at order time."""
    __tablename__ = "order_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    order = relationship("Order", back_populates="items")


from app.models.returns import OrderRefund, OrderReturn, OrderReturnItem  # noqa: E402
from app.models.timeline import OrderTimeline  # noqa: E402

__all__ = [
    "ACTIVE_REFUND_STATUSES", "ActorType", "Order", "OrderItem", "OrderRefund",
    "OrderReturn", "OrderReturnItem", "OrderStatus", "OrderTimeline", "Product",
    "RefundStatus", "RefundType", "ReturnStatus", "TimelineEvent", "as_utc", "utcnow",
]
