"""Typed timeline payloads, one model per event kind.

Payloads are stored in the timeline ``metadata`` column as camelCase JSON.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.enums import OrderStatus, RefundStatus, RefundType, TimelineEvent


class EventPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_metadata(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StatusChangedPayload(EventPayload):
    previous_status: OrderStatus
    new_status: OrderStatus


class RestoredStock(EventPayload):
    product_id: UUID
    quantity: int


class OrderCancelledPayload(EventPayload):
    reason: str
    notes: Optional[str] = None
    restored_stock: list[RestoredStock] = Field(default_factory=list)


class ReturnRequestedPayload(EventPayload):
    return_id: UUID
    return_number: str
    item_count: int


class ReturnReviewedPayload(EventPayload):
    return_id: UUID
    return_number: str
    approved: bool


class RefundInitiatedPayload(EventPayload):
    refund_id: UUID
    refund_number: str
    amount: Decimal
    type: RefundType


class RefundSettledPayload(EventPayload):
    refund_id: UUID
    refund_number: str
    amount: Decimal
    status: RefundStatus


class DetailsUpdatedPayload(EventPayload):
    updated_fields: list[str]


PAYLOAD_TYPES: dict[TimelineEvent, type[EventPayload]] = {
    TimelineEvent.STATUS_CHANGED: StatusChangedPayload,
    TimelineEvent.ORDER_CANCELLED: OrderCancelledPayload,
    TimelineEvent.RETURN_REQUESTED: ReturnRequestedPayload,
    TimelineEvent.RETURN_APPROVED: ReturnReviewedPayload,
    TimelineEvent.RETURN_REJECTED: ReturnReviewedPayload,
    TimelineEvent.REFUND_INITIATED: RefundInitiatedPayload,
    TimelineEvent.REFUND_COMPLETED: RefundSettledPayload,
    TimelineEvent.REFUND_FAILED: RefundSettledPayload,
    TimelineEvent.DETAILS_UPDATED: DetailsUpdatedPayload,
}


def parse_payload(event, metadata: Optional[dict]) -> EventPayload:
    """Rebuild the typed payload stored with a timeline row."""
    return PAYLOAD_TYPES[TimelineEvent(event)].model_validate(metadata or {})
