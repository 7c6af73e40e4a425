"""
Rider Application Model - Onboarding Requests
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum

from parcel_server.core.validation import generate_object_id
from parcel_server.db.database import Base


class RiderStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"


class RiderApplication(Base):
    """Request to become a delivery rider; one per e-mail, pending -> approved only"""

    __tablename__ = "riders"

    id = Column(String(24), primary_key=True, default=generate_object_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(150), nullable=True)
    phone = Column(String(30), nullable=True)
    age = Column(Integer, nullable=True)
    region = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    nid = Column(String(50), nullable=True)  # national id number
    bike_brand = Column(String(100), nullable=True)
    bike_registration = Column(String(50), nullable=True)

    status = Column(
        SQLEnum(
            RiderStatus,
            name="rider_status",
            values_callable=lambda x: [e.value for e in x]
        ),
        default=RiderStatus.PENDING,
        nullable=False,
        index=True
    )
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    approved_at = Column(DateTime, nullable=True)
