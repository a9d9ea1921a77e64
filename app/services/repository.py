"""Shared data access for the ledger services.

Services receive an ``AsyncSession`` and wrap every operation in ``atomic``.
Mutating operations load the order with ``lock=True`` (SELECT ... FOR UPDATE)
and touch it, so the order's version column turns a lost race into a
``ConcurrencyConflict`` even where row locks are unavailable.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.models import (
    ACTIVE_REFUND_STATUSES, Order, OrderRefund, OrderReturn, OrderReturnItem,
    Product, ReturnStatus, utcnow,
)
from app.services.errors import (
    ConcurrencyConflict, OrderNotFound, ProductNotFound, ReferenceNumberExhausted,
    RefundNotFound, ReturnNotFound,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit the enclosed reads and writes as one transaction.

    Any exception rolls the whole unit back. A failed version check is
    reported as ConcurrencyConflict.
    """
    try:
        yield session
        await session.commit()
    except StaleDataError as exc:
        await session.rollback()
        logger.warning("Concurrent modification detected: %s", exc)
        raise ConcurrencyConflict(
            "The record was modified concurrently; re-read its state before retrying",
        ) from exc
    except Exception:
        await session.rollback()
        raise


def as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class OrderRepository:
    """Queries and writes shared by the order lifecycle services."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Orders ───────────────────────────────────────────
    async def get_order(self, order_id, *, lock: bool = False, with_items: bool = False) -> Order:
        key = as_uuid(order_id)
        if key is None:
            raise OrderNotFound(order_id)
        stmt = select(Order).where(Order.id == key)
        if with_items:
            stmt = stmt.options(selectinload(Order.items))
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def get_order_details(self, order_id) -> Order:
        key = as_uuid(order_id)
        if key is None:
            raise OrderNotFound(order_id)
        stmt = (
            select(Order)
            .where(Order.id == key)
            .options(
                selectinload(Order.items),
                selectinload(Order.returns).selectinload(OrderReturn.items),
                selectinload(Order.refunds),
                selectinload(Order.timeline),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    @staticmethod
    def touch(order: Order) -> None:
        """Mark the order dirty so the write is guarded by its version."""
        order.updated_at = utcnow()

    # ── Products ─────────────────────────────────────────
    async def missing_products(self, product_ids) -> set:
        wanted = set(product_ids)
        if not wanted:
            return set()
        result = await self.session.execute(select(Product.id).where(Product.id.in_(list(wanted))))
        return wanted - set(result.scalars().all())

    async def restore_stock(self, product_id, quantity: int) -> None:
        result = await self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity, updated_at=utcnow())
        )
        if result.rowcount == 0:
            raise ProductNotFound(product_id)

    # ── Returns ──────────────────────────────────────────
    async def get_return(self, return_id, *, lock: bool = False, with_items: bool = False) -> OrderReturn:
        key = as_uuid(return_id)
        if key is None:
            raise ReturnNotFound(return_id)
        stmt = select(OrderReturn).where(OrderReturn.id == key)
        if with_items:
            stmt = stmt.options(selectinload(OrderReturn.items))
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        ret = result.scalar_one_or_none()
        if ret is None:
            raise ReturnNotFound(return_id)
        return ret

    async def list_returns(self, order_id) -> list[OrderReturn]:
        result = await self.session.execute(
            select(OrderReturn)
            .where(OrderReturn.order_id == order_id)
            .options(selectinload(OrderReturn.items))
            .order_by(OrderReturn.created_at.desc())
        )
        return list(result.scalars().all())

    async def claimed_return_quantities(self, order_id) -> dict:
        """Quantity per order item already claimed by non-rejected returns."""
        result = await self.session.execute(
            select(OrderReturnItem.order_item_id, func.sum(OrderReturnItem.quantity))
            .join(OrderReturn, OrderReturnItem.return_id == OrderReturn.id)
            .where(
                OrderReturn.order_id == order_id,
                OrderReturn.status != ReturnStatus.REJECTED,
            )
            .group_by(OrderReturnItem.order_item_id)
        )
        return {item_id: int(qty or 0) for item_id, qty in result.all()}

    # ── Refunds ──────────────────────────────────────────
    async def get_refund(self, refund_id, *, lock: bool = False) -> OrderRefund:
        key = as_uuid(refund_id)
        if key is None:
            raise RefundNotFound(refund_id)
        stmt = select(OrderRefund).where(OrderRefund.id == key)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        refund = result.scalar_one_or_none()
        if refund is None:
            raise RefundNotFound(refund_id)
        return refund

    async def list_refunds(self, order_id) -> list[OrderRefund]:
        result = await self.session.execute(
            select(OrderRefund)
            .where(OrderRefund.order_id == order_id)
            .order_by(OrderRefund.created_at.desc())
        )
        return list(result.scalars().all())

    async def refunded_total(self, order_id) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(OrderRefund.amount), 0)).where(
                OrderRefund.order_id == order_id,
                OrderRefund.status.in_(list(ACTIVE_REFUND_STATUSES)),
            )
        )
        return Decimal(str(result.scalar_one())).quantize(Decimal("0.01"))

    async def find_refund_by_key(self, order_id, idempotency_key: str) -> Optional[OrderRefund]:
        result = await self.session.execute(
            select(OrderRefund).where(
                OrderRefund.order_id == order_id,
                OrderRefund.idempotency_key == idempotency_key,
            )
        )
        return result.scalar_one_or_none()

    # ── Reference numbers ────────────────────────────────
    async def unique_reference(self, column, generate: Callable[[], str], attempts: int) -> str:
        """Generate a number not yet present in ``column``.

        The column's unique constraint still guards the insert itself.
        """
        for _ in range(max(1, attempts)):
            candidate = generate()
            result = await self.session.execute(select(column).where(column == candidate).limit(1))
            if result.scalar_one_or_none() is None:
                return candidate
            logger.warning("Reference number collision on %s: %s", column.key, candidate)
        raise ReferenceNumberExhausted(
            f"Could not generate a unique {column.key} after {attempts} attempts",
            attempts=attempts,
        )

