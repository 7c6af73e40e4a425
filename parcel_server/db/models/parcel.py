"""
Parcel Model - Shipment Records
"""
import enum
import secrets
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Numeric, Text

from parcel_server.core.validation import generate_object_id
from parcel_server.db.database import Base


def generate_tracking_id() -> str:
    """Human-shareable tracking code, e.g. PCL-3F9A1C7E02"""
    return f"PCL-{secrets.token_hex(5).upper()}"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class Parcel(Base):
    """Parcel submitted by a customer.

    payment_status, paid_at and transaction_id are written only by the
    payment ledger, in the same transaction that records the payment.
    """

    __tablename__ = "parcels"

    id = Column(String(24), primary_key=True, default=generate_object_id)
    tracking_id = Column(String(32), unique=True, nullable=False, default=generate_tracking_id, index=True)

    # Owner
    email = Column(String(255), nullable=False, index=True)

    title = Column(String(200), nullable=True)
    parcel_type = Column(String(30), nullable=True)  # document / non-document
    weight = Column(Numeric(10, 2), nullable=True)
    cost = Column(Numeric(10, 2), nullable=True)

    # Sender
    sender_name = Column(String(150), nullable=True)
    sender_contact = Column(String(30), nullable=True)
    sender_region = Column(String(100), nullable=True)
    sender_address = Column(Text, nullable=True)

    # Receiver
    receiver_name = Column(String(150), nullable=True)
    receiver_contact = Column(String(30), nullable=True)
    receiver_region = Column(String(100), nullable=True)
    receiver_address = Column(Text, nullable=True)

    payment_status = Column(
        SQLEnum(
            PaymentStatus,
            name="payment_status",
            values_callable=lambda x: [e.value for e in x]
        ),
        default=PaymentStatus.UNPAID,
        nullable=False,
        index=True
    )
    delivery_status = Column(String(30), default="not_collected", nullable=False)

    transaction_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime, nullable=True)

    creation_timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
