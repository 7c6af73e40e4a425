"""
User Model - Customers, Riders and Admins
"""
import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Text

from parcel_server.core.validation import generate_object_id
from parcel_server.db.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    RIDER = "rider"


class User(Base):
    """Account keyed by e-mail; at most one row per address"""

    __tablename__ = "users"

    id = Column(String(24), primary_key=True, default=generate_object_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    uid = Column(String(128), nullable=True, index=True)  # identity provider uid
    name = Column(String(150), nullable=True)
    photo_url = Column(Text, nullable=True)
    role = Column(
        SQLEnum(
            UserRole,
            name="user_role",
            values_callable=lambda x: [e.value for e in x]
        ),
        default=UserRole.USER,
        nullable=False
    )

    created_at = Column(DateTime, default=datetime.utcnow)
    last_log_in = Column(DateTime, nullable=True)
