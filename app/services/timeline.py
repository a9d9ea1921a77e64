"""Order timeline: append-only audit log.

Every state-changing ledger operation appends exactly one row through
``TimelineRecorder.add_event`` inside its own transaction. Consumers such as
notifications or analytics read rows back with ``events_after``; the ledger
never calls them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    ACTIVE_REFUND_STATUSES, ActorType, OrderStatus, OrderTimeline, RefundStatus,
    ReturnStatus, TimelineEvent,
)
from app.schemas.timeline import (
    PAYLOAD_TYPES, DetailsUpdatedPayload, EventPayload, OrderCancelledPayload,
    RefundInitiatedPayload, RefundSettledPayload, ReturnRequestedPayload,
    ReturnReviewedPayload, StatusChangedPayload, parse_payload,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Identity responsible for an operation, supplied by the caller."""
    actor_id: str
    actor_name: Optional[str] = None
    actor_type: ActorType = ActorType.ADMIN


SYSTEM_ACTOR = Actor(actor_id="system", actor_name="System", actor_type=ActorType.SYSTEM)


class TimelineRecorder:
    """Writes and reads order timeline rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_event(
        self,
        order_id,
        event: TimelineEvent,
        title: str,
        actor: Actor,
        payload: EventPayload,
        description: Optional[str] = None,
        actor_type: Optional[ActorType] = None,
    ) -> OrderTimeline:
        """Append one row in the caller's transaction and return it.

        ``payload`` must be the model registered for ``event`` in
        PAYLOAD_TYPES. ``actor_type`` overrides the actor's own type for
        operations whose audit role is fixed.
        """
        expected = PAYLOAD_TYPES[event]
        if not isinstance(payload, expected):
            raise TypeError(
                f"{event.value} expects {expected.__name__}, got {type(payload).__name__}"
            )
        row = OrderTimeline(
            order_id=order_id,
            event=event,
            title=title,
            description=description,
            actor_type=actor_type or actor.actor_type,
            actor_id=actor.actor_id,
            actor_name=actor.actor_name,
            payload=payload.to_metadata(),
        )
        self.session.add(row)
        await self.session.flush()
        logger.debug("Timeline %s recorded for order %s", event.value, order_id)
        return row

    async def list_events(self, order_id) -> list[OrderTimeline]:
        result = await self.session.execute(
            select(OrderTimeline)
            .where(OrderTimeline.order_id == order_id)
            .order_by(OrderTimeline.id)
        )
        return list(result.scalars().all())

    async def events_after(self, cursor: int = 0, limit: int = 100) -> list[OrderTimeline]:
        """Global feed of rows with id > cursor, oldest first."""
        result = await self.session.execute(
            select(OrderTimeline)
            .where(OrderTimeline.id > cursor)
            .order_by(OrderTimeline.id)
            .limit(limit)
        )
        return list(result.scalars().all())


# ── Replay ───────────────────────────────────────────────
@dataclass
class ReplayedOrder:
    """Order state rebuilt from its timeline alone."""
    status: OrderStatus = OrderStatus.PENDING
    cancellation_reason: Optional[str] = None
    restored_stock: dict[UUID, int] = field(default_factory=dict)
    returns: dict[UUID, ReturnStatus] = field(default_factory=dict)
    refunds: dict[UUID, tuple[Decimal, RefundStatus]] = field(default_factory=dict)
    updated_fields: set[str] = field(default_factory=set)

    @property
    def refunded_total(self) -> Decimal:
        return sum(
            (amount for amount, status in self.refunds.values() if status in ACTIVE_REFUND_STATUSES),
            Decimal("0"),
        )


def replay(events: Iterable[OrderTimeline]) -> ReplayedOrder:
    """Fold timeline rows, in creation order, into a ReplayedOrder."""
    state = ReplayedOrder()
    for row in events:
        payload = parse_payload(row.event, row.payload)
        if isinstance(payload, StatusChangedPayload):
            state.status = payload.new_status
        elif isinstance(payload, OrderCancelledPayload):
            state.status = OrderStatus.CANCELLED
            state.cancellation_reason = payload.reason
            for line in payload.restored_stock:
                state.restored_stock[line.product_id] = (
                    state.restored_stock.get(line.product_id, 0) + line.quantity
                )
        elif isinstance(payload, ReturnRequestedPayload):
            state.returns[payload.return_id] = ReturnStatus.REQUESTED
        elif isinstance(payload, ReturnReviewedPayload):
            state.returns[payload.return_id] = (
                ReturnStatus.APPROVED if payload.approved else ReturnStatus.REJECTED
            )
        elif isinstance(payload, RefundInitiatedPayload):
            state.refunds[payload.refund_id] = (payload.amount, RefundStatus.PROCESSING)
        elif isinstance(payload, RefundSettledPayload):
            state.refunds[payload.refund_id] = (payload.amount, payload.status)
        elif isinstance(payload, DetailsUpdatedPayload):
            state.updated_fields.update(payload.updated_fields)
        else:
            raise TypeError(f"Unhandled timeline payload: {type(payload).__name__}")
    return state
