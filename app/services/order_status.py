"""Order status state machine."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models import Order, OrderStatus, TimelineEvent, utcnow
from app.schemas.timeline import StatusChangedPayload
from app.services.errors import InvalidStateTransition, NoStatusChange, ValidationError
from app.services.repository import OrderRepository, atomic
from app.services.timeline import Actor, TimelineRecorder

logger = logging.getLogger(__name__)

# Forward-only moves allowed through update_status.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset({
    OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING,
})


def can_transition(current: OrderStatus, new: OrderStatus, strict: bool = True) -> bool:
    """Whether update_status may move an order from ``current`` to ``new``.

    CANCELLED is never entered or left here; cancel_order owns it so stock
    restitution cannot be skipped. In non-strict mode any other differing
    status is accepted.
    """
    if current == new or OrderStatus.CANCELLED in (current, new):
        return False
    if not strict:
        return True
    return new in ALLOWED_TRANSITIONS[current]


def check_transition(current: OrderStatus, new: OrderStatus, strict: bool = True) -> None:
    if current == new:
        raise NoStatusChange(
            f"Order is already in status: {current.value}",
            current_status=current.value,
            requested_status=new.value,
        )
    if not can_transition(current, new, strict):
        hint = " (use cancel_order)" if new == OrderStatus.CANCELLED else ""
        raise InvalidStateTransition(
            f"Cannot change order status from {current.value} to {new.value}{hint}",
            current_status=current.value,
            requested_status=new.value,
        )


class OrderStatusService:
    """Validates and applies order status transitions."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = OrderRepository(session)
        self.timeline = TimelineRecorder(session)

    async def update_status(
        self,
        order_id,
        new_status,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> Order:
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Invalid order status: {new_status}", requested_status=str(new_status))

        async with atomic(self.session):
            order = await self.repo.get_order(order_id, lock=True)
            previous = order.status
            try:
                check_transition(previous, new_status, self.settings.strict_status_transitions)
            except InvalidStateTransition:
                logger.warning(
                    "Rejected status change %s -> %s on order %s",
                    previous.value, new_status.value, order.order_number,
                )
                raise

            order.status = new_status
            if notes:
                order.notes = notes
            if new_status == OrderStatus.DELIVERED:
                order.actual_delivery = utcnow()

            await self.timeline.add_event(
                order.id,
                TimelineEvent.STATUS_CHANGED,
                f"Order status changed to {new_status.value}",
                actor,
                StatusChangedPayload(previous_status=previous, new_status=new_status),
                description=notes,
            )

        logger.info(
            "Order %s status %s -> %s by %s",
            order.order_number, previous.value, new_status.value, actor.actor_id,
        )
        return order
