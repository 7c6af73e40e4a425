"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- Fake payment processor
- Bearer tokens signed with the shared test secret
- Test data factories
"""
# Settings are read at import time; point them at test values before importing the app
import os
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_MODE", "jwt")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("PAYMENT_GATEWAY_KEY", "sk_test_dummy")

import pytest
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from parcel_server.api.dependencies.auth import get_payment_gateway
from parcel_server.core.auth import create_access_token
from parcel_server.core.circuit_breaker import CircuitBreaker
from parcel_server.core.config import settings
from parcel_server.db.database import Base, get_db
from parcel_server.db.models.parcel import Parcel, PaymentStatus
from parcel_server.db.models.payment import Payment
from parcel_server.db.models.rider import RiderApplication, RiderStatus
from parcel_server.db.models.user import User, UserRole
from parcel_server.domain.services.payment_gateway import PaymentGateway, PaymentIntentResult
from parcel_server.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


# ============================================================================
# Fake External Services
# ============================================================================

class FakePaymentGateway(PaymentGateway):
    """In-process stand-in for Stripe; remembers every call"""

    def __init__(self):
        self.calls: list[tuple[int, Optional[dict[str, str]]]] = []
        self.error: Optional[Exception] = None

    async def create_payment_intent(self, amount, metadata=None):
        self.calls.append((amount, metadata))
        if self.error is not None:
            raise self.error
        return PaymentIntentResult(
            intent_id=f"pi_test_{len(self.calls)}",
            client_secret=f"pi_test_{len(self.calls)}_secret_abc",
            amount=amount,
            currency="bdt",
        )


@pytest.fixture
def fake_payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession, fake_payment_gateway: FakePaymentGateway):
    """Create test client with database and payment processor overrides"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_payment_gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Breaker state is process-wide; start every test closed"""
    CircuitBreaker.reset_all()
    yield
    CircuitBreaker.reset_all()


# ============================================================================
# Tokens
# ============================================================================

@pytest.fixture
def auth_token() -> str:
    """HS256 token accepted by the shared-secret verifier"""
    return create_access_token(
        uid="firebase-uid-123",
        email="owner@example.com",
        secret=settings.JWT_SECRET_KEY,
    )


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_token}"}


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def parcel_factory(db_session: AsyncSession):
    """Factory for creating test parcels"""
    async def _create_parcel(
        email: str = "owner@example.com",
        title: str = "Documents",
        payment_status: PaymentStatus = PaymentStatus.UNPAID,
        cost: Decimal = Decimal("150.00"),
        creation_timestamp: Optional[datetime] = None,
    ) -> Parcel:
        parcel = Parcel(
            email=email,
            title=title,
            parcel_type="document",
            cost=cost,
            sender_name="Sender",
            receiver_name="Receiver",
            payment_status=payment_status,
            creation_timestamp=creation_timestamp or datetime.utcnow(),
        )
        db_session.add(parcel)
        await db_session.commit()
        await db_session.refresh(parcel)
        return parcel

    return _create_parcel


@pytest.fixture
def payment_factory(db_session: AsyncSession):
    """Factory for payment rows written directly, bypassing the ledger"""
    async def _create_payment(
        parcel_id: str,
        email: str = "owner@example.com",
        amount: Decimal = Decimal("100.00"),
        paid_at: Optional[datetime] = None,
    ) -> Payment:
        payment = Payment(
            parcel_id=parcel_id,
            email=email,
            amount=amount,
            payment_method="card",
            transaction_id="tx_seed",
            paid_at=paid_at or datetime.utcnow(),
        )
        db_session.add(payment)
        await db_session.commit()
        await db_session.refresh(payment)
        return payment

    return _create_payment


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Factory for creating test users"""
    async def _create_user(
        email: str = "user@example.com",
        uid: Optional[str] = "uid-user",
        name: Optional[str] = "Test User",
        role: UserRole = UserRole.USER,
        created_at: Optional[datetime] = None,
    ) -> User:
        user = User(
            email=email,
            uid=uid,
            name=name,
            role=role,
            created_at=created_at or datetime.utcnow(),
            last_log_in=datetime.utcnow(),
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def rider_factory(db_session: AsyncSession):
    """Factory for creating rider applications"""
    async def _create_rider(
        email: str = "rider@example.com",
        name: str = "Rider",
        status: RiderStatus = RiderStatus.PENDING,
        submitted_at: Optional[datetime] = None,
    ) -> RiderApplication:
        application = RiderApplication(
            email=email,
            name=name,
            phone="01700000000",
            age=25,
            region="Dhaka",
            district="Dhaka",
            status=status,
            submitted_at=submitted_at or datetime.utcnow(),
            approved_at=datetime.utcnow() if status == RiderStatus.APPROVED else None,
        )
        db_session.add(application)
        await db_session.commit()
        await db_session.refresh(application)
        return application

    return _create_rider
