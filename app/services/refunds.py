"""Refund ledger.

Records refund intent against an order and keeps the sum of PROCESSING and
COMPLETED refunds at or below the order total. Moving the money is the payment
gateway's job; ``settle_refund`` records its outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models import (
    ActorType, OrderRefund, OrderStatus, RefundStatus, RefundType, TimelineEvent, utcnow,
)
from app.schemas.timeline import RefundInitiatedPayload, RefundSettledPayload
from app.services.errors import (
    InvalidRefundState, InvalidStateTransition, RefundExceedsOrderTotal, ReturnNotFound,
    ValidationError,
)
from app.services.numbering import generate_refund_number
from app.services.repository import OrderRepository, atomic
from app.services.timeline import Actor, TimelineRecorder

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class RefundSummary:
    order_total: Decimal
    total_refunded: Decimal
    refundable: Decimal
    currency: str

    def to_dict(self) -> dict:
        return {
            "order_total": str(self.order_total),
            "total_refunded": str(self.total_refunded),
            "refundable": str(self.refundable),
            "currency": self.currency,
        }


def to_amount(value) -> Decimal:
    """Parse a positive money amount with at most two decimal places."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid refund amount: {value}", requested_amount=str(value))
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Refund amount must be positive", requested_amount=str(value))
    if amount != amount.quantize(CENT):
        raise ValidationError(
            "Refund amount cannot have more than two decimal places",
            requested_amount=str(value),
        )
    return amount.quantize(CENT)


class RefundService:
    """Issues and settles refunds against an order."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = OrderRepository(session)
        self.timeline = TimelineRecorder(session)

    async def create_refund(
        self,
        order_id,
        amount,
        refund_type,
        reason: str,
        processed_by: Actor,
        description: Optional[str] = None,
        return_id=None,
        idempotency_key: Optional[str] = None,
    ) -> OrderRefund:
        """Create a PROCESSING refund.

        ``refund_type`` is descriptive only; the amount check is the same for
        every type. With an ``idempotency_key`` a repeated call returns the
        refund created by the first one.
        """
        amount = to_amount(amount)
        try:
            refund_type = RefundType(refund_type)
        except ValueError:
            raise ValidationError(f"Invalid refund type: {refund_type}", type=str(refund_type))
        if not reason or not reason.strip():
            raise ValidationError("Refund reason is required")

        async with atomic(self.session):
            order = await self.repo.get_order(order_id, lock=True)

            if idempotency_key:
                existing = await self.repo.find_refund_by_key(order.id, idempotency_key)
                if existing is not None:
                    if existing.amount != amount or existing.type != refund_type:
                        raise ValidationError(
                            "Idempotency key was already used for a different refund",
                            idempotency_key=idempotency_key,
                            refund_id=str(existing.id),
                        )
                    logger.info(
                        "Refund %s replayed for idempotency key %s",
                        existing.refund_number, idempotency_key,
                    )
                    return existing

            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateTransition(
                    "Cannot refund a cancelled order",
                    current_status=order.status.value,
                )

            linked_return = None
            if return_id is not None:
                linked_return = await self.repo.get_return(return_id)
                if linked_return.order_id != order.id:
                    raise ReturnNotFound(return_id)

            total = Decimal(order.total)
            already = await self.repo.refunded_total(order.id)
            if already + amount > total:
                logger.warning(
                    "Rejected refund of %s on order %s: %s of %s already refunded",
                    amount, order.order_number, already, total,
                )
                raise RefundExceedsOrderTotal(
                    "Refund amount exceeds remaining refundable amount",
                    order_total=str(total),
                    total_refunded=str(already),
                    requested_amount=str(amount),
                    refundable=str(total - already),
                )

            refund = OrderRefund(
                order_id=order.id,
                return_id=linked_return.id if linked_return is not None else None,
                refund_number=await self.repo.unique_reference(
                    OrderRefund.refund_number,
                    generate_refund_number,
                    self.settings.reference_number_attempts,
                ),
                amount=amount,
                type=refund_type,
                status=RefundStatus.PROCESSING,
                reason=reason,
                description=description,
                processed_by=processed_by.actor_id,
                processed_at=utcnow(),
                idempotency_key=idempotency_key,
            )
            self.session.add(refund)
            self.repo.touch(order)
            await self.session.flush()

            await self.timeline.add_event(
                order.id,
                TimelineEvent.REFUND_INITIATED,
                "Refund initiated",
                processed_by,
                RefundInitiatedPayload(
                    refund_id=refund.id,
                    refund_number=refund.refund_number,
                    amount=amount,
                    type=refund_type,
                ),
                description=f"{refund_type.value} refund of {order.currency} {amount:.2f} initiated",
                actor_type=ActorType.ADMIN,
            )

        logger.info(
            "Refund %s of %s initiated on order %s by %s",
            refund.refund_number, amount, order.order_number, processed_by.actor_id,
        )
        return refund

    async def settle_refund(self, refund_id, succeeded: bool, actor: Actor) -> OrderRefund:
        """Record the gateway outcome: PROCESSING -> COMPLETED or FAILED."""
        async with atomic(self.session):
            refund = await self.repo.get_refund(refund_id)
            order = await self.repo.get_order(refund.order_id, lock=True)
            refund = await self.repo.get_refund(refund_id, lock=True)
            if refund.status != RefundStatus.PROCESSING:
                raise InvalidRefundState(
                    f"Cannot settle refund with status: {refund.status.value}",
                    refund_id=str(refund.id),
                    current_status=refund.status.value,
                )

            refund.status = RefundStatus.COMPLETED if succeeded else RefundStatus.FAILED
            refund.settled_at = utcnow()
            self.repo.touch(order)

            await self.timeline.add_event(
                order.id,
                TimelineEvent.REFUND_COMPLETED if succeeded else TimelineEvent.REFUND_FAILED,
                f"Refund {'completed' if succeeded else 'failed'}",
                actor,
                RefundSettledPayload(
                    refund_id=refund.id,
                    refund_number=refund.refund_number,
                    amount=Decimal(refund.amount),
                    status=refund.status,
                ),
            )

        logger.info("Refund %s settled as %s", refund.refund_number, refund.status.value)
        return refund

    async def refund_summary(self, order_id) -> RefundSummary:
        order = await self.repo.get_order(order_id)
        total = Decimal(order.total)
        refunded = await self.repo.refunded_total(order.id)
        return RefundSummary(
            order_total=total,
            total_refunded=refunded,
            refundable=total - refunded,
            currency=order.currency,
        )

    async def list_refunds(self, order_id) -> list[OrderRefund]:
        order = await self.repo.get_order(order_id)
        return await self.repo.list_refunds(order.id)
