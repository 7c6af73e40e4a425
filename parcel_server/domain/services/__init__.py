"""
Domain Services
"""
from parcel_server.domain.services.parcel_service import ParcelService
from parcel_server.domain.services.payment_service import (
    PaymentLedgerService,
    PaymentOutcome,
    PaymentResult,
)
from parcel_server.domain.services.payment_gateway import PaymentGateway, StripePaymentGateway
from parcel_server.domain.services.tracking_service import TrackingService
from parcel_server.domain.services.user_service import UserService
from parcel_server.domain.services.rider_service import RiderService

__all__ = [
    "ParcelService",
    "PaymentLedgerService",
    "PaymentOutcome",
    "PaymentResult",
    "PaymentGateway",
    "StripePaymentGateway",
    "TrackingService",
    "UserService",
    "RiderService",
]
