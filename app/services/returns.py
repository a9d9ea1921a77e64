"""Return request workflow: request, then approve or reject."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models import (
    ActorType, OrderReturn, OrderReturnItem, OrderStatus, ReturnStatus, TimelineEvent,
    as_utc, utcnow,
)
from app.schemas.timeline import ReturnRequestedPayload, ReturnReviewedPayload
from app.services.errors import (
    InvalidReturnState, InvalidStateForReturn, ItemNotFound, QuantityExceedsOrdered,
    ReturnWindowExpired, ValidationError,
)
from app.services.numbering import generate_return_number
from app.services.repository import OrderRepository, as_uuid, atomic
from app.services.timeline import Actor, TimelineRecorder

logger = logging.getLogger(__name__)

RETURNABLE_STATUSES = frozenset({OrderStatus.DELIVERED})


@dataclass
class ReturnItemRequest:
    order_item_id: str
    quantity: int
    reason: str
    condition: Optional[str] = None


class ReturnService:
    """Creates and reviews return requests for delivered orders.

    Reviewing a return never issues money; refunds go through RefundService.
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = OrderRepository(session)
        self.timeline = TimelineRecorder(session)

    async def create_return_request(
        self,
        order_id,
        items: Sequence[ReturnItemRequest],
        reason: str,
        requested_by: Actor,
        description: Optional[str] = None,
        images: Optional[list[str]] = None,
    ) -> OrderReturn:
        if not items:
            raise ValidationError("At least one item must be selected for return")
        if not reason or not reason.strip():
            raise ValidationError("Return reason is required")
        for item in items:
            if item.quantity <= 0:
                raise ValidationError(
                    f"Return quantity must be positive for item {item.order_item_id}",
                    order_item_id=str(item.order_item_id),
                    requested=item.quantity,
                )

        async with atomic(self.session):
            order = await self.repo.get_order(order_id, lock=True, with_items=True)
            if order.status not in RETURNABLE_STATUSES:
                logger.warning(
                    "Rejected return request on order %s in status %s",
                    order.order_number, order.status.value,
                )
                raise InvalidStateForReturn(
                    f"Cannot create return for order with status: {order.status.value}",
                    current_status=order.status.value,
                )

            window = timedelta(days=self.settings.return_window_days)
            if utcnow() > as_utc(order.created_at) + window:
                raise ReturnWindowExpired(
                    "Return window has expired. Returns must be requested within "
                    f"{self.settings.return_window_days} days of order.",
                    return_window_days=self.settings.return_window_days,
                )

            self._check_quantities(order, items, await self._already_claimed(order.id))

            ret = OrderReturn(
                order_id=order.id,
                return_number=await self.repo.unique_reference(
                    OrderReturn.return_number,
                    generate_return_number,
                    self.settings.reference_number_attempts,
                ),
                status=ReturnStatus.REQUESTED,
                reason=reason,
                description=description,
                images=list(images or []),
                requested_by=requested_by.actor_id,
                items=[
                    OrderReturnItem(
                        order_item_id=as_uuid(item.order_item_id),
                        quantity=item.quantity,
                        reason=item.reason,
                        condition=item.condition,
                    )
                    for item in items
                ],
            )
            self.session.add(ret)
            self.repo.touch(order)
            await self.session.flush()

            await self.timeline.add_event(
                order.id,
                TimelineEvent.RETURN_REQUESTED,
                "Return request created",
                requested_by,
                ReturnRequestedPayload(
                    return_id=ret.id,
                    return_number=ret.return_number,
                    item_count=len(items),
                ),
                description=f"Return request #{ret.return_number} created",
                actor_type=ActorType.CUSTOMER,
            )

        logger.info(
            "Return %s requested on order %s by %s",
            ret.return_number, order.order_number, requested_by.actor_id,
        )
        return ret

    async def _already_claimed(self, order_id) -> dict:
        if not self.settings.limit_returns_to_remaining_quantity:
            return {}
        return await self.repo.claimed_return_quantities(order_id)

    @staticmethod
    def _check_quantities(order, items: Sequence[ReturnItemRequest], claimed: dict) -> None:
        ordered = {item.id: item for item in order.items}
        requested: dict = defaultdict(int)
        for item in items:
            key = as_uuid(item.order_item_id)
            order_item = ordered.get(key)
            if order_item is None:
                raise ItemNotFound(
                    f"Order item {item.order_item_id} not found",
                    order_item_id=str(item.order_item_id),
                )
            requested[key] += item.quantity
            already = claimed.get(key, 0)
            if already + requested[key] > order_item.quantity:
                raise QuantityExceedsOrdered(
                    f"Cannot return more than ordered quantity for item {item.order_item_id}",
                    order_item_id=str(item.order_item_id),
                    ordered=order_item.quantity,
                    already_requested=already,
                    requested=requested[key],
                )

    async def process_return_request(
        self,
        return_id,
        approved: bool,
        reviewed_by: Actor,
        review_notes: Optional[str] = None,
    ) -> OrderReturn:
        """Approve or reject a REQUESTED return. Runs once per return."""
        async with atomic(self.session):
            ret = await self.repo.get_return(return_id)
            order = await self.repo.get_order(ret.order_id, lock=True)
            ret = await self.repo.get_return(return_id, lock=True, with_items=True)
            if ret.status != ReturnStatus.REQUESTED:
                logger.warning(
                    "Rejected review of return %s in status %s",
                    ret.return_number, ret.status.value,
                )
                raise InvalidReturnState(
                    f"Cannot process return with status: {ret.status.value}",
                    return_id=str(ret.id),
                    current_status=ret.status.value,
                )

            ret.status = ReturnStatus.APPROVED if approved else ReturnStatus.REJECTED
            ret.reviewed_by = reviewed_by.actor_id
            ret.reviewed_at = utcnow()
            ret.review_notes = review_notes
            self.repo.touch(order)

            await self.timeline.add_event(
                order.id,
                TimelineEvent.RETURN_APPROVED if approved else TimelineEvent.RETURN_REJECTED,
                f"Return request {'approved' if approved else 'rejected'}",
                reviewed_by,
                ReturnReviewedPayload(
                    return_id=ret.id,
                    return_number=ret.return_number,
                    approved=approved,
                ),
                description=review_notes,
                actor_type=ActorType.ADMIN,
            )

        logger.info(
            "Return %s %s by %s",
            ret.return_number, ret.status.value.lower(), reviewed_by.actor_id,
        )
        return ret

    async def get_return(self, return_id) -> OrderReturn:
        return await self.repo.get_return(return_id, with_items=True)

    async def list_returns(self, order_id) -> list[OrderReturn]:
        order = await self.repo.get_order(order_id)
        return await self.repo.list_returns(order.id)
