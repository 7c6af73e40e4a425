"""
Tracking Event Model - Append-only Status Log
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text

from parcel_server.core.validation import generate_object_id
from parcel_server.db.database import Base


class TrackingEvent(Base):
    """Status update for a tracking id. Never updated or deleted."""

    __tablename__ = "trackings"

    id = Column(String(24), primary_key=True, default=generate_object_id)
    tracking_id = Column(String(64), nullable=False, index=True)
    # Set only when the caller supplied a well-formed id; not checked against parcels
    parcel_id = Column(String(24), nullable=True, index=True)
    status = Column(String(50), nullable=False)
    message = Column(Text, nullable=False, default="")
    updated_by = Column(String(255), nullable=False, default="")
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
