"""
Tests for the payment ledger: mark parcel paid + record payment, all or nothing
"""
import pytest
from decimal import Decimal

from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_server.core.exceptions import ValidationException
from parcel_server.db.models.parcel import Parcel, PaymentStatus
from parcel_server.db.models.payment import Payment
from parcel_server.domain.services.payment_service import PaymentLedgerService, PaymentOutcome

MISSING_ID = "0" * 24


async def _payment_count(db: AsyncSession, parcel_id: str | None = None) -> int:
    query = select(func.count()).select_from(Payment)
    if parcel_id:
        query = query.where(Payment.parcel_id == parcel_id)
    result = await db.execute(query)
    return result.scalar_one()


class TestRecordPayment:
    """record_payment happy path and outcomes"""

    @pytest.mark.unit
    async def test_marks_parcel_paid_and_records_payment(
        self, db_session: AsyncSession, parcel_factory
    ):
        parcel = await parcel_factory()
        service = PaymentLedgerService(db_session)

        result = await service.record_payment(
            parcel.id, "A@B.com", 500, payment_method="card", transaction_id="tx1"
        )

        assert result.success
        assert result.outcome == PaymentOutcome.RECORDED
        assert result.message == "Payment recorded and parcel marked as paid"

        await db_session.refresh(parcel)
        assert parcel.payment_status == PaymentStatus.PAID
        assert parcel.transaction_id == "tx1"
        assert parcel.paid_at is not None

        payments = (await db_session.execute(select(Payment))).scalars().all()
        assert len(payments) == 1
        assert payments[0].parcel_id == parcel.id
        assert payments[0].amount == Decimal("500.00")
        assert payments[0].email == "a@b.com"
        assert payments[0].payment_method == "card"
        assert payments[0].paid_at == parcel.paid_at

    @pytest.mark.unit
    async def test_uppercase_parcel_id_is_accepted(self, db_session: AsyncSession, parcel_factory):
        parcel = await parcel_factory()
        service = PaymentLedgerService(db_session)

        result = await service.record_payment(parcel.id.upper(), "a@b.com", 10)

        assert result.success
        assert result.payment.parcel_id == parcel.id

    @pytest.mark.unit
    async def test_unknown_parcel_is_not_found_and_writes_nothing(self, db_session: AsyncSession):
        service = PaymentLedgerService(db_session)

        result = await service.record_payment(MISSING_ID, "a@b.com", 10, "card", "tx1")

        assert not result.success
        assert result.outcome == PaymentOutcome.NOT_FOUND
        assert result.message == "Parcel not found or already removed"
        assert await _payment_count(db_session) == 0

    @pytest.mark.unit
    async def test_second_payment_for_paid_parcel_is_rejected(
        self, db_session: AsyncSession, parcel_factory
    ):
        parcel = await parcel_factory()
        parcel_id = parcel.id
        service = PaymentLedgerService(db_session)

        first = await service.record_payment(parcel_id, "a@b.com", 500, "card", "tx1")
        second = await service.record_payment(parcel_id, "a@b.com", 500, "card", "tx2")
        third = await service.record_payment(parcel_id, "a@b.com", 500, "card", "tx3")

        assert first.success
        assert second.outcome == PaymentOutcome.ALREADY_PAID
        assert second.message == "Parcel is already paid"
        assert third.outcome == PaymentOutcome.ALREADY_PAID
        assert await _payment_count(db_session, parcel_id) == 1

        await db_session.refresh(parcel)
        assert parcel.transaction_id == "tx1"

    @pytest.mark.unit
    async def test_payment_does_not_touch_other_parcels(
        self, db_session: AsyncSession, parcel_factory
    ):
        paid = await parcel_factory(title="paid")
        other = await parcel_factory(title="other")
        service = PaymentLedgerService(db_session)

        await service.record_payment(paid.id, "a@b.com", 20)

        await db_session.refresh(other)
        assert other.payment_status == PaymentStatus.UNPAID
        assert other.paid_at is None


class TestRecordPaymentValidation:
    """Invalid input fails before any storage access"""

    @pytest.mark.unit
    @pytest.mark.parametrize("parcel_id", ["", "abc", "z" * 24, "0" * 23, None])
    async def test_malformed_parcel_id(self, db_session: AsyncSession, parcel_factory, parcel_id):
        await parcel_factory()
        service = PaymentLedgerService(db_session)

        with pytest.raises(ValidationException) as exc_info:
            await service.record_payment(parcel_id, "a@b.com", 10)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid parcel ID"
        assert await _payment_count(db_session) == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("amount", [0, -1, -0.01, None])
    async def test_non_positive_amount(self, db_session: AsyncSession, parcel_factory, amount):
        parcel = await parcel_factory()
        service = PaymentLedgerService(db_session)

        with pytest.raises(ValidationException) as exc_info:
            await service.record_payment(parcel.id, "a@b.com", amount)

        assert exc_info.value.message == "Amount must be > 0"
        await db_session.refresh(parcel)
        assert parcel.payment_status == PaymentStatus.UNPAID
        assert await _payment_count(db_session) == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
    async def test_non_finite_amount(self, db_session: AsyncSession, parcel_factory, amount):
        parcel = await parcel_factory()
        service = PaymentLedgerService(db_session)

        with pytest.raises(ValidationException) as exc_info:
            await service.record_payment(parcel.id, "a@b.com", amount)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Amount must be a finite number"
        await db_session.refresh(parcel)
        assert parcel.payment_status == PaymentStatus.UNPAID
        assert await _payment_count(db_session) == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("amount,stored", [
        (12.345, Decimal("12.345")),
        (25_000_000, Decimal("25000000")),
        (0.01, Decimal("0.01")),
    ])
    async def test_any_positive_amount_is_recorded(
        self, db_session: AsyncSession, parcel_factory, amount, stored: Decimal
    ):
        parcel = await parcel_factory()
        service = PaymentLedgerService(db_session)

        result = await service.record_payment(parcel.id, "a@b.com", amount)

        assert result.success
        await db_session.refresh(result.payment)
        assert result.payment.amount == stored


class TestRecordPaymentAtomicity:
    """A fault between the two writes leaves both tables as they were"""

    @pytest.mark.integration
    async def test_payment_insert_failure_rolls_back_parcel_update(
        self, db_session: AsyncSession, parcel_factory
    ):
        parcel = await parcel_factory()
        service = PaymentLedgerService(db_session)

        def fail_insert(mapper, connection, target):
            raise OperationalError("INSERT INTO payments", {}, Exception("disk I/O error"))

        event.listen(Payment, "before_insert", fail_insert)
        try:
            result = await service.record_payment(parcel.id, "a@b.com", 500, "card", "tx1")
        finally:
            event.remove(Payment, "before_insert", fail_insert)

        assert result.outcome == PaymentOutcome.FAILED
        assert result.message == "Payment save failed"

        await db_session.refresh(parcel)
        assert parcel.payment_status == PaymentStatus.UNPAID
        assert parcel.paid_at is None
        assert parcel.transaction_id is None
        assert await _payment_count(db_session) == 0

    @pytest.mark.integration
    async def test_ledger_recovers_after_failed_attempt(
        self, db_session: AsyncSession, parcel_factory
    ):
        parcel = await parcel_factory()
        parcel_id = parcel.id
        service = PaymentLedgerService(db_session)

        def fail_insert(mapper, connection, target):
            raise RuntimeError("simulated crash")

        event.listen(Payment, "before_insert", fail_insert)
        try:
            failed = await service.record_payment(parcel_id, "a@b.com", 500, "card", "tx1")
        finally:
            event.remove(Payment, "before_insert", fail_insert)

        retried = await service.record_payment(parcel_id, "a@b.com", 500, "card", "tx1")

        assert failed.outcome == PaymentOutcome.FAILED
        assert retried.success
        assert await _payment_count(db_session, parcel_id) == 1
        await db_session.refresh(parcel)
        assert parcel.payment_status == PaymentStatus.PAID


class TestPaymentHistory:

    @pytest.mark.unit
    async def test_newest_first(self, db_session: AsyncSession, parcel_factory):
        service = PaymentLedgerService(db_session)
        first = await parcel_factory(title="first")
        second = await parcel_factory(title="second")

        await service.record_payment(first.id, "a@b.com", 10)
        await service.record_payment(second.id, "a@b.com", 20)

        history = await service.get_payment_history()

        assert [p.parcel_id for p in history] == [second.id, first.id]

    @pytest.mark.unit
    async def test_filter_by_email(self, db_session: AsyncSession, parcel_factory, payment_factory):
        parcel = await parcel_factory()
        await payment_factory(parcel.id, email="mine@example.com")
        await payment_factory(parcel.id, email="other@example.com")
        service = PaymentLedgerService(db_session)

        history = await service.get_payment_history("Mine@Example.com")

        assert len(history) == 1
        assert history[0].email == "mine@example.com"

