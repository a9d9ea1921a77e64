"""Order records: registration, detail reads and non-status updates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models import Order, OrderItem, OrderStatus, TimelineEvent
from app.schemas.timeline import DetailsUpdatedPayload
from app.services.errors import InvalidStateTransition, ProductNotFound, ValidationError
from app.services.numbering import generate_order_number
from app.services.repository import OrderRepository, as_uuid, atomic
from app.services.timeline import Actor, TimelineRecorder

logger = logging.getLogger(__name__)


@dataclass
class OrderLine:
    product_id: str
    quantity: int
    price: Decimal = Decimal("0")


class OrderService:
    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = OrderRepository(session)
        self.timeline = TimelineRecorder(session)

    async def register_order(
        self,
        customer_id: str,
        items: Sequence[OrderLine],
        total,
        currency: Optional[str] = None,
        notes: str = "",
    ) -> Order:
        """Store an order produced by the placement flow, in PENDING.

        Pricing and stock reservation happened upstream; ``total`` is taken
        as given and no timeline event is written.
        """
        if not items:
            raise ValidationError("An order needs at least one item")
        if any(line.quantity <= 0 for line in items):
            raise ValidationError("Item quantities must be positive")
        total = Decimal(str(total))
        if total < 0:
            raise ValidationError("Order total cannot be negative", total=str(total))

        product_ids = []
        for line in items:
            pid = as_uuid(line.product_id)
            if pid is None:
                raise ProductNotFound(line.product_id)
            product_ids.append(pid)

        async with atomic(self.session):
            missing = await self.repo.missing_products(product_ids)
            if missing:
                raise ProductNotFound(sorted(str(pid) for pid in missing)[0])

            order = Order(
                order_number=await self.repo.unique_reference(
                    Order.order_number,
                    generate_order_number,
                    self.settings.reference_number_attempts,
                ),
                customer_id=customer_id,
                status=OrderStatus.PENDING,
                total=total,
                currency=currency or self.settings.currency,
                notes=notes,
                items=[
                    OrderItem(
                        product_id=pid,
                        position=position,
                        quantity=line.quantity,
                        price=Decimal(str(line.price)),
                    )
                    for position, (line, pid) in enumerate(zip(items, product_ids))
                ],
            )
            self.session.add(order)
            await self.session.flush()

        logger.info("Order %s registered for customer %s", order.order_number, customer_id)
        return order

    async def get_order(self, order_id) -> Order:
        return await self.repo.get_order(order_id, with_items=True)

    async def get_order_details(self, order_id) -> Order:
        """Order with items, returns, refunds and timeline loaded."""
        return await self.repo.get_order_details(order_id)

    async def update_details(
        self,
        order_id,
        actor: Actor,
        notes: Optional[str] = None,
        tracking_number: Optional[str] = None,
        estimated_delivery: Optional[datetime] = None,
        customer_notes: Optional[str] = None,
    ) -> Order:
        changes = {
            key: value
            for key, value in (
                ("notes", notes),
                ("tracking_number", tracking_number),
                ("estimated_delivery", estimated_delivery),
                ("customer_notes", customer_notes),
            )
            if value is not None
        }
        if not changes:
            raise ValidationError("Nothing to update")

        async with atomic(self.session):
            order = await self.repo.get_order(order_id, lock=True, with_items=True)
            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateTransition(
                    "Cannot update a cancelled order",
                    current_status=order.status.value,
                )
            for key, value in changes.items():
                setattr(order, key, value)
            self.repo.touch(order)

            await self.timeline.add_event(
                order.id,
                TimelineEvent.DETAILS_UPDATED,
                "Order updated",
                actor,
                DetailsUpdatedPayload(updated_fields=sorted(changes)),
                description=notes or "Order information updated",
            )

        logger.info("Order %s updated (%s)", order.order_number, ", ".join(sorted(changes)))
        return order
