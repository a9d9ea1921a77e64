"""Global timeline feed for downstream consumers."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.schemas import TimelineEventOut
from app.services.timeline import TimelineRecorder

router = APIRouter(prefix="/timeline", tags=["timeline"])


@router.get("/", response_model=list[TimelineEventOut])
async def timeline_feed(
    after: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """Events with id greater than ``after``, oldest first."""
    return await TimelineRecorder(db).events_after(after, limit or get_settings().timeline_feed_limit)
