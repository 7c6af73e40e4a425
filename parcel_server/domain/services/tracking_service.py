"""
Tracking Service - append-only tracking event log
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from parcel_server.db.models.tracking import TrackingEvent
from parcel_server.core.exceptions import ValidationException
from parcel_server.core.logging import get_logger
from parcel_server.core.validation import ObjectIdValidator, TextSanitizer

logger = get_logger(__name__)


class TrackingService:
    """Service for tracking events. Events are only ever appended."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_tracking_event(
        self,
        tracking_id: Optional[str],
        status: Optional[str],
        parcel_id: Optional[str] = None,
        message: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> TrackingEvent:
        """
        Append an event for ``tracking_id``.

        parcel_id is kept only when it is a well-formed id; it is not checked
        against existing parcels.
        """
        tracking_id = TextSanitizer.sanitize(tracking_id, max_length=64)
        status = TextSanitizer.sanitize(status, max_length=50)
        if not tracking_id or not status:
            raise ValidationException("Tracking ID and status are required.")

        event = TrackingEvent(
            tracking_id=tracking_id,
            parcel_id=ObjectIdValidator.optional(parcel_id),
            status=status,
            message=TextSanitizer.sanitize(message),
            updated_by=TextSanitizer.sanitize(updated_by, max_length=255),
            updated_at=datetime.utcnow(),
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)

        logger.info(
            "Tracking event added",
            extra_data={"tracking_id": tracking_id, "status": status, "event_id": event.id}
        )
        return event

    async def get_events(self, tracking_id: str) -> List[TrackingEvent]:
        result = await self.db.execute(
            select(TrackingEvent)
            .where(TrackingEvent.tracking_id == tracking_id)
            .order_by(TrackingEvent.updated_at.asc(), TrackingEvent.id.asc())
        )
        return list(result.scalars().all())
