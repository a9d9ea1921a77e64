"""Order cancellation with stock restitution."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Order, OrderStatus, TimelineEvent, utcnow
from app.schemas.timeline import OrderCancelledPayload, RestoredStock
from app.services.errors import InvalidStateTransition, ValidationError
from app.services.order_status import CANCELLABLE_STATUSES
from app.services.repository import OrderRepository, atomic
from app.services.timeline import Actor, TimelineRecorder

logger = logging.getLogger(__name__)


class CancellationService:
    """Cancels an order and returns every item's quantity to stock, atomically."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = OrderRepository(session)
        self.timeline = TimelineRecorder(session)

    async def cancel_order(
        self,
        order_id,
        reason: str,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> Order:
        """Cancel a PENDING, CONFIRMED or PROCESSING order.

        Not idempotent: a second call fails the status precondition instead of
        restoring stock twice.
        """
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required")

        async with atomic(self.session):
            order = await self.repo.get_order(order_id, lock=True, with_items=True)
            if order.status not in CANCELLABLE_STATUSES:
                logger.warning(
                    "Rejected cancellation of order %s in status %s",
                    order.order_number, order.status.value,
                )
                raise InvalidStateTransition(
                    f"Cannot cancel order with status: {order.status.value}",
                    current_status=order.status.value,
                    requested_status=OrderStatus.CANCELLED.value,
                )

            order.status = OrderStatus.CANCELLED
            order.cancellation_reason = reason
            order.cancellation_notes = notes
            order.cancelled_at = utcnow()
            order.cancelled_by = actor.actor_id

            restored = []
            for item in order.items:
                await self.repo.restore_stock(item.product_id, item.quantity)
                restored.append(RestoredStock(product_id=item.product_id, quantity=item.quantity))

            description = f"Reason: {reason}"
            if notes:
                description += f". Notes: {notes}"
            await self.timeline.add_event(
                order.id,
                TimelineEvent.ORDER_CANCELLED,
                "Order cancelled",
                actor,
                OrderCancelledPayload(reason=reason, notes=notes, restored_stock=restored),
                description=description,
            )

        logger.info(
            "Order %s cancelled by %s, %d item(s) restocked",
            order.order_number, actor.actor_id, len(restored),
        )
        return order
