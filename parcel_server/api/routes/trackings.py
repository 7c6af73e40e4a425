"""
Tracking API Routes
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_server.db.database import get_db
from parcel_server.domain.services.tracking_service import TrackingService

router = APIRouter()


class TrackingCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tracking_id: Optional[str] = None
    parcel_id: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    updated_by: Optional[str] = None


class TrackingEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tracking_id: str
    parcel_id: Optional[str] = None
    status: str
    message: str
    updated_by: str
    updated_at: datetime


class TrackingInsertResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    inserted_id: str = Field(alias="insertedId")


@router.post(
    "",
    response_model=TrackingInsertResult,
    status_code=201,
    summary="Add a tracking event",
    description="Appends a status update for a tracking id. `parcel_id` is kept only if well formed.",
    responses={
        201: {"description": "Event stored"},
        400: {"description": "Tracking ID and status are required"},
    },
)
async def add_tracking_event(
    event_data: TrackingCreate,
    db: AsyncSession = Depends(get_db),
) -> TrackingInsertResult:
    service = TrackingService(db)
    event = await service.add_tracking_event(
        tracking_id=event_data.tracking_id,
        status=event_data.status,
        parcel_id=event_data.parcel_id,
        message=event_data.message,
        updated_by=event_data.updated_by,
    )
    return TrackingInsertResult(inserted_id=event.id)


@router.get(
    "/{tracking_id}",
    response_model=List[TrackingEventResponse],
    summary="Tracking history",
    description="All events for one tracking id, oldest first.",
)
async def get_tracking_events(
    tracking_id: str,
    db: AsyncSession = Depends(get_db),
) -> List[TrackingEventResponse]:
    service = TrackingService(db)
    return await service.get_events(tracking_id)
