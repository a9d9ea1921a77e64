"""Returns & refunds models."""

import uuid

from sqlalchemy import (
    Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, JSON, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base
from app.models import utcnow
from app.models.enums import RefundStatus, RefundType, ReturnStatus


class OrderReturn(Base):
    """Customer return request against a delivered order."""
    __tablename__ = "order_returns"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    return_number = Column(String(32), unique=True, nullable=False, index=True)
    status = Column(Enum(ReturnStatus, name="return_status"), nullable=False, default=ReturnStatus.REQUESTED)
    reason = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    images = Column(JSON, default=list)  # URLs of return item photos
    requested_by = Column(String(100), nullable=False)
    reviewed_by = Column(String(100), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="returns")
    items = relationship("OrderReturnItem", back_populates="order_return")
    refunds = relationship("OrderRefund", back_populates="order_return")

    __mapper_args__ = {"version_id_col": version}


class OrderReturnItem(Base):
    __tablename__ = "order_return_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    return_id = Column(UUID(as_uuid=True), ForeignKey("order_returns.id"), nullable=False, index=True)
    order_item_id = Column(UUID(as_uuid=True), ForeignKey("order_items.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    condition = Column(String(100), nullable=True)

    order_return = relationship("OrderReturn", back_populates="items")


class OrderRefund(Base):
    """Refund ledger entry. Records intent; the gateway settles it."""
    __tablename__ = "order_refunds"
    __table_args__ = (
        UniqueConstraint("order_id", "idempotency_key", name="uq_refund_idempotency"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    return_id = Column(UUID(as_uuid=True), ForeignKey("order_returns.id"), nullable=True)
    refund_number = Column(String(32), unique=True, nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(Enum(RefundType, name="refund_type"), nullable=False)
    status = Column(Enum(RefundStatus, name="refund_status"), nullable=False, default=RefundStatus.PROCESSING)
    reason = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    processed_by = Column(String(100), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    idempotency_key = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="refunds")
    order_return = relationship("OrderReturn", back_populates="refunds")
