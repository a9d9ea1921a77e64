"""Shared route dependencies."""

from typing import NoReturn, Optional

from fastapi import Header, HTTPException

from app.models.enums import ActorType
from app.services.errors import LedgerError
from app.services.timeline import Actor


async def get_actor(
    x_actor_id: str = Header(..., min_length=1),
    x_actor_name: Optional[str] = Header(None),
    x_actor_type: ActorType = Header(ActorType.ADMIN),
) -> Actor:
    """Identity forwarded by the upstream identity provider."""
    return Actor(actor_id=x_actor_id, actor_name=x_actor_name, actor_type=x_actor_type)


def raise_http(error: LedgerError) -> NoReturn:
    raise HTTPException(status_code=error.status_code, detail=error.to_dict()) from error
