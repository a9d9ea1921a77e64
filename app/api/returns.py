"""Return request API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor, raise_http
from app.database import get_db
from app.schemas import ReturnCreate, ReturnOut, ReturnReview
from app.services.errors import LedgerError
from app.services.returns import ReturnItemRequest, ReturnService
from app.services.timeline import Actor

router = APIRouter(tags=["returns"])


@router.post("/orders/{order_id}/returns", response_model=ReturnOut, status_code=201)
async def create_return(
    order_id: UUID,
    body: ReturnCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await ReturnService(db).create_return_request(
            order_id,
            items=[
                ReturnItemRequest(
                    order_item_id=i.order_item_id,
                    quantity=i.quantity,
                    reason=i.reason,
                    condition=i.condition,
                )
                for i in body.items
            ],
            reason=body.reason,
            requested_by=actor,
            description=body.description,
            images=body.images,
        )
    except LedgerError as e:
        raise_http(e)


@router.get("/orders/{order_id}/returns", response_model=list[ReturnOut])
async def list_returns(order_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await ReturnService(db).list_returns(order_id)
    except LedgerError as e:
        raise_http(e)


@router.get("/returns/{return_id}", response_model=ReturnOut)
async def get_return(return_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await ReturnService(db).get_return(return_id)
    except LedgerError as e:
        raise_http(e)


@router.post("/returns/{return_id}/review", response_model=ReturnOut)
async def review_return(
    return_id: UUID,
    body: ReturnReview,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await ReturnService(db).process_return_request(
            return_id, body.approved, actor, body.review_notes
        )
    except LedgerError as e:
        raise_http(e)
