"""
Payment API Routes

POST /payments is the only endpoint that writes two tables; the ledger
service does the work atomically and returns an outcome that is mapped to
HTTP here.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_server.api.dependencies.auth import get_payment_gateway, verify_bearer_token
from parcel_server.core.auth import TokenClaims
from parcel_server.core.exceptions import ParcelAlreadyPaidError, PaymentTransactionError
from parcel_server.core.logging import get_logger
from parcel_server.db.database import get_db
from parcel_server.domain.services.payment_gateway import PaymentGateway
from parcel_server.domain.services.payment_service import PaymentLedgerService, PaymentOutcome

logger = get_logger(__name__)

router = APIRouter()


class PaymentCreate(BaseModel):
    """Schema for recording a completed payment. Ids and amounts are checked by the ledger."""
    model_config = ConfigDict(populate_by_name=True)

    parcel_id: Optional[str] = Field(default=None, alias="parcelId")
    email: Optional[str] = None
    amount: Optional[float] = None
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    parcel_id: str = Field(alias="parcelId")
    email: Optional[str] = None
    amount: float
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    paid_at: datetime = Field(alias="paidAt")


class PaymentRecordedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    inserted_id: str = Field(alias="insertedId")


class PaymentIntentCreate(BaseModel):
    """Amount in the smallest currency unit"""
    model_config = ConfigDict(populate_by_name=True)

    amount: int
    parcel_id: Optional[str] = Field(default=None, alias="parcelId")


class PaymentIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(alias="clientSecret")


@router.post(
    "/create-payment-intent",
    response_model=PaymentIntentResponse,
    summary="Create a payment intent",
    description="Asks the payment processor for an intent and returns its client secret.",
    responses={
        200: {"description": "Intent created"},
        400: {"description": "Amount is not a positive integer"},
        500: {"description": "Payment processor error"},
    },
    tags=["payments"],
)
async def create_payment_intent(
    intent_data: PaymentIntentCreate,
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentIntentResponse:
    metadata = {"parcel_id": intent_data.parcel_id} if intent_data.parcel_id else None
    intent = await gateway.create_payment_intent(intent_data.amount, metadata)
    return PaymentIntentResponse(client_secret=intent.client_secret)


@router.post(
    "/payments",
    response_model=PaymentRecordedResponse,
    status_code=201,
    summary="Record a payment",
    description=(
        "Marks the parcel paid and stores the payment in one transaction. "
        "Either both writes happen or neither does."
    ),
    responses={
        201: {"description": "Payment recorded and parcel marked as paid"},
        400: {"description": "Malformed parcel ID, or amount not a finite number > 0"},
        409: {"description": "Parcel is already paid"},
        500: {"description": "Transaction failed; nothing was written"},
    },
    tags=["payments"],
)
async def record_payment(
    payment_data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
) -> PaymentRecordedResponse:
    service = PaymentLedgerService(db)
    result = await service.record_payment(
        parcel_id=payment_data.parcel_id,
        email=payment_data.email,
        amount=payment_data.amount,
        payment_method=payment_data.payment_method,
        transaction_id=payment_data.transaction_id,
    )

    if result.outcome == PaymentOutcome.ALREADY_PAID:
        raise ParcelAlreadyPaidError(payment_data.parcel_id)
    if not result.success:
        raise PaymentTransactionError(result.message, parcel_id=payment_data.parcel_id)

    return PaymentRecordedResponse(message=result.message, inserted_id=result.payment.id)


@router.get(
    "/payments",
    response_model=List[PaymentResponse],
    summary="Payment history",
    description="Payments, optionally for one payer, newest first. Requires a bearer token.",
    responses={
        200: {"description": "Payments found"},
        401: {"description": "Missing bearer token"},
        403: {"description": "Token rejected"},
    },
    tags=["payments"],
)
async def list_payments(
    email: Optional[str] = Query(None, description="Payer e-mail filter"),
    claims: TokenClaims = Depends(verify_bearer_token),
    db: AsyncSession = Depends(get_db),
) -> List[PaymentResponse]:
    service = PaymentLedgerService(db)
    return await service.get_payment_history(email)
