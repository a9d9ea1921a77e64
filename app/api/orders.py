"""Order lifecycle API."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor, raise_http
from app.database import get_db
from app.schemas import (
    OrderCancel, OrderCreate, OrderDetailOut, OrderOut, OrderUpdate, StatusUpdate,
    TimelineEventOut,
)
from app.services.cancellation import CancellationService
from app.services.errors import LedgerError
from app.services.order_status import OrderStatusService
from app.services.orders import OrderLine, OrderService
from app.services.timeline import Actor, TimelineRecorder

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=201)
async def create_order(data: OrderCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await OrderService(db).register_order(
            customer_id=data.customer_id,
            items=[
                OrderLine(product_id=i.product_id, quantity=i.quantity, price=i.price)
                for i in data.items
            ],
            total=data.total,
            currency=data.currency,
            notes=data.notes,
        )
    except LedgerError as e:
        raise_http(e)


@router.get("/{order_id}", response_model=OrderDetailOut)
async def get_order(order_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await OrderService(db).get_order_details(order_id)
    except LedgerError as e:
        raise_http(e)


@router.patch("/{order_id}", response_model=OrderOut)
async def update_order(
    order_id: UUID,
    data: OrderUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await OrderService(db).update_details(
            order_id, actor, **data.model_dump(exclude_unset=True)
        )
    except LedgerError as e:
        raise_http(e)


@router.post("/{order_id}/status", response_model=OrderOut)
async def update_status(
    order_id: UUID,
    data: StatusUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await OrderStatusService(db).update_status(order_id, data.status, actor, data.notes)
    except LedgerError as e:
        raise_http(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
async def cancel_order(
    order_id: UUID,
    data: OrderCancel,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CancellationService(db).cancel_order(order_id, data.reason, actor, data.notes)
    except LedgerError as e:
        raise_http(e)


@router.get("/{order_id}/timeline", response_model=list[TimelineEventOut])
async def order_timeline(order_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        order = await OrderService(db).get_order(order_id)
    except LedgerError as e:
        raise_http(e)
    return await TimelineRecorder(db).list_events(order.id)
