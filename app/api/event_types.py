from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.models import Player
from app.schemas.events import EventTypeResponse, EventTypesGrouped, EventTypeUpdate
from app.api.deps import get_current_user, require_admin
from app.services.event_catalog import group_by_category, list_event_types, update_point_value

router = APIRouter(prefix="/api/event-types", tags=["Event Types"])


@router.get("", response_model=EventTypesGrouped)
async def get_event_types(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    return group_by_category(await list_event_types(db))


@router.put("/{event_type_id}", response_model=EventTypeResponse)
async def update_event_type(
    event_type_id: int,
    body: EventTypeUpdate,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    """Changes apply to events recorded from now on; existing ledger rows keep their points."""
    return await update_point_value(db, event_type_id, body.point_value)
