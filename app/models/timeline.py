"""Append-only order timeline."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base
from app.models import utcnow
from app.models.enums import ActorType, TimelineEvent


class OrderTimeline(Base):
    """One audit entry. Rows are inserted, never updated or deleted."""
    __tablename__ = "order_timeline"

    # Integer sequence so creation order is total, even within one millisecond.
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    event = Column(Enum(TimelineEvent, name="timeline_event"), nullable=False)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    actor_type = Column(Enum(ActorType, name="actor_type"), nullable=False, default=ActorType.SYSTEM)
    actor_id = Column(String(100), nullable=True)
    actor_name = Column(String(300), nullable=True)
    # "metadata" is reserved on declarative classes
    payload = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="timeline")
