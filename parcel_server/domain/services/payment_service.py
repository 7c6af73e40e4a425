"""
Payment Ledger Service - Atomic "mark parcel paid + record payment"

Implements the only two-table write in the system as one transaction:
1. Validate parcel id and amount (no storage access on failure)
2. Conditionally UPDATE the parcel to paid, guarded on it not being paid yet
   (PostgreSQL row-locks the parcel, so concurrent submissions serialize)
3. INSERT the payment row referencing the parcel
4. COMMIT, or ROLLBACK on any fault so neither write is visible

The outcome is returned as a PaymentResult instead of being raised, so the
caller decides how each outcome maps onto its own protocol.
"""
import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from parcel_server.db.models.parcel import Parcel, PaymentStatus
from parcel_server.db.models.payment import Payment
from parcel_server.core.logging import get_logger, mask_email
from parcel_server.core.validation import AmountValidator, EmailValidator, ObjectIdValidator, TextSanitizer

logger = get_logger(__name__)


class PaymentOutcome(str, enum.Enum):
    RECORDED = "recorded"
    NOT_FOUND = "not_found"
    ALREADY_PAID = "already_paid"
    FAILED = "failed"


@dataclass
class PaymentResult:
    """Result of one record_payment call"""
    outcome: PaymentOutcome
    message: str
    payment: Optional[Payment] = None

    @property
    def success(self) -> bool:
        return self.outcome == PaymentOutcome.RECORDED


class PaymentLedgerService:
    """Owns the parcel payment status and the payment history"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_payment(
        self,
        parcel_id: str,
        email: Optional[str],
        amount: Optional[float],
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> PaymentResult:
        """
        Mark the parcel paid and append its payment record, all or nothing.

        Every outcome other than RECORDED rolls the session back, which expires
        all instances loaded in it, including the caller's. Read ids before
        the call or refresh afterwards.

        Raises:
            ValidationException: malformed parcel id, or amount not a finite number > 0;
                nothing is written

        Returns:
            PaymentResult with outcome RECORDED, NOT_FOUND, ALREADY_PAID or FAILED
        """
        pid = ObjectIdValidator.require(parcel_id, "parcel ID", field="parcelId")
        value = AmountValidator.require(amount)
        payer = EmailValidator.normalize(email) if email else None
        method = TextSanitizer.sanitize(payment_method, max_length=50) or None
        txn = TextSanitizer.sanitize(transaction_id, max_length=255) or None

        now = datetime.utcnow()

        try:
            # 1. Flip the parcel to paid unless it already is
            update_result = await self.db.execute(
                update(Parcel)
                .where(Parcel.id == pid, Parcel.payment_status != PaymentStatus.PAID)
                .values(payment_status=PaymentStatus.PAID, paid_at=now, transaction_id=txn)
            )

            if update_result.rowcount == 0:
                await self.db.rollback()
                return await self._unmatched_result(pid)

            # 2. Payment history row, same transaction
            payment = Payment(
                parcel_id=pid,
                email=payer,
                amount=Decimal(str(value)),
                payment_method=method,
                transaction_id=txn,
                paid_at=now,
            )
            self.db.add(payment)
            await self.db.flush()

            # 3. Commit both writes together
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "Payment transaction rolled back",
                extra_data={
                    "parcel_id": pid,
                    "transaction_id": txn,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
                exc_info=True,
            )
            return PaymentResult(PaymentOutcome.FAILED, "Payment save failed")

        await self.db.refresh(payment)
        logger.info(
            "Payment recorded",
            extra_data={
                "parcel_id": pid,
                "payment_id": payment.id,
                "amount": str(payment.amount),
                "email": mask_email(payer or ""),
            },
        )
        return PaymentResult(
            PaymentOutcome.RECORDED,
            "Payment recorded and parcel marked as paid",
            payment,
        )

    async def _unmatched_result(self, parcel_id: str) -> PaymentResult:
        """Tell a missing parcel apart from one that is already paid"""
        result = await self.db.execute(select(Parcel.id).where(Parcel.id == parcel_id))
        if result.scalar_one_or_none() is None:
            logger.warning("Payment for unknown parcel", extra_data={"parcel_id": parcel_id})
            return PaymentResult(PaymentOutcome.NOT_FOUND, "Parcel not found or already removed")

        logger.warning("Duplicate payment rejected", extra_data={"parcel_id": parcel_id})
        return PaymentResult(PaymentOutcome.ALREADY_PAID, "Parcel is already paid")

    async def get_payment_history(self, email: Optional[str] = None) -> List[Payment]:
        """Payments, optionally for one payer, newest first"""
        query = select(Payment)
        if email:
            query = query.where(Payment.email == EmailValidator.normalize(email))
        result = await self.db.execute(query.order_by(Payment.paid_at.desc(), Payment.id.desc()))
        return list(result.scalars().all())

