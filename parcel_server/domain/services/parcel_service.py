"""
Parcel Service - parcel submission, listing, lookup and deletion
"""
from typing import Any, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from parcel_server.db.models.parcel import Parcel, PaymentStatus
from parcel_server.core.exceptions import ParcelNotFoundError
from parcel_server.core.logging import get_logger
from parcel_server.core.validation import EmailValidator, ObjectIdValidator

logger = get_logger(__name__)

# Written only by the payment ledger
_LEDGER_FIELDS = {"payment_status", "paid_at", "transaction_id"}


class ParcelService:
    """Service for managing parcels"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_parcel(self, email: str, **fields: Any) -> Parcel:
        """Insert a new unpaid parcel owned by ``email``"""
        owner = EmailValidator.require(email)
        data = {k: v for k, v in fields.items() if k not in _LEDGER_FIELDS and v is not None}

        parcel = Parcel(email=owner, payment_status=PaymentStatus.UNPAID, **data)
        self.db.add(parcel)
        await self.db.commit()
        await self.db.refresh(parcel)

        logger.info(
            "Parcel created",
            extra_data={"parcel_id": parcel.id, "tracking_id": parcel.tracking_id}
        )
        return parcel

    async def list_parcels(self, email: Optional[str] = None) -> List[Parcel]:
        """All parcels, or those owned by ``email``, newest first"""
        query = select(Parcel)
        if email:
            query = query.where(Parcel.email == EmailValidator.normalize(email))
        result = await self.db.execute(
            query.order_by(Parcel.creation_timestamp.desc(), Parcel.id.desc())
        )
        return list(result.scalars().all())

    async def get_parcel(self, parcel_id: str) -> Parcel:
        """Parcel by id; ValidationException for a malformed id, ParcelNotFoundError if absent"""
        pid = ObjectIdValidator.require(parcel_id, "parcel ID", field="parcel_id")
        result = await self.db.execute(select(Parcel).where(Parcel.id == pid))
        parcel = result.scalar_one_or_none()
        if not parcel:
            raise ParcelNotFoundError(pid)
        return parcel

    async def delete_parcel(self, parcel_id: str) -> None:
        pid = ObjectIdValidator.require(parcel_id, "parcel ID", field="parcel_id")
        result = await self.db.execute(delete(Parcel).where(Parcel.id == pid))
        if result.rowcount == 0:
            await self.db.rollback()
            raise ParcelNotFoundError(pid)
        await self.db.commit()

        logger.info("Parcel deleted", extra_data={"parcel_id": pid})
