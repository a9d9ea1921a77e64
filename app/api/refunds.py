"""Refund ledger API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_actor, raise_http
from app.database import get_db
from app.schemas import RefundCreate, RefundOut, RefundSettle, RefundSummaryOut
from app.services.errors import LedgerError
from app.services.refunds import RefundService
from app.services.timeline import Actor

router = APIRouter(tags=["refunds"])


@router.post("/orders/{order_id}/refunds", response_model=RefundOut, status_code=201)
async def create_refund(
    order_id: UUID,
    body: RefundCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await RefundService(db).create_refund(
            order_id,
            amount=body.amount,
            refund_type=body.type,
            reason=body.reason,
            processed_by=actor,
            description=body.description,
            return_id=body.return_id,
            idempotency_key=body.idempotency_key,
        )
    except LedgerError as e:
        raise_http(e)


@router.get("/orders/{order_id}/refunds", response_model=list[RefundOut])
async def list_refunds(order_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        return await RefundService(db).list_refunds(order_id)
    except LedgerError as e:
        raise_http(e)


@router.get("/orders/{order_id}/refunds/summary", response_model=RefundSummaryOut)
async def refund_summary(order_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        summary = await RefundService(db).refund_summary(order_id)
    except LedgerError as e:
        raise_http(e)
    return RefundSummaryOut.model_validate(summary)


@router.post("/refunds/{refund_id}/settle", response_model=RefundOut)
async def settle_refund(
    refund_id: UUID,
    body: RefundSettle,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await RefundService(db).settle_refund(refund_id, body.succeeded, actor)
    except LedgerError as e:
        raise_http(e)
