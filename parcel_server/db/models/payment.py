"""
Payment Model - Immutable Payment History
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Numeric

from parcel_server.core.validation import generate_object_id
from parcel_server.db.database import Base


class Payment(Base):
    """One row per parcel marked paid; written together with the parcel update.

    parcel_id is an indexed reference without a foreign key: parcel deletion
    is a separate operation and never touches payment history.
    """

    __tablename__ = "payments"

    id = Column(String(24), primary_key=True, default=generate_object_id)
    parcel_id = Column(String(24), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    amount = Column(Numeric(18, 4), nullable=False)
    payment_method = Column(String(50), nullable=True)
    transaction_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
