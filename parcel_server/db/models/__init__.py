"""
Database Models
"""
from parcel_server.db.models.parcel import Parcel, PaymentStatus
from parcel_server.db.models.payment import Payment
from parcel_server.db.models.tracking import TrackingEvent
from parcel_server.db.models.user import User, UserRole
from parcel_server.db.models.rider import RiderApplication, RiderStatus

__all__ = [
    "Parcel",
    "PaymentStatus",
    "Payment",
    "TrackingEvent",
    "User",
    "UserRole",
    "RiderApplication",
    "RiderStatus",
]
