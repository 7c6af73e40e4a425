"""
Parcel API Routes
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_server.api.dependencies.auth import verify_bearer_token
from parcel_server.core.auth import TokenClaims
from parcel_server.core.logging import get_logger
from parcel_server.core.validation import sanitized_text_validator
from parcel_server.db.database import get_db
from parcel_server.db.models.parcel import PaymentStatus
from parcel_server.domain.services.parcel_service import ParcelService

logger = get_logger(__name__)

router = APIRouter()


class ParcelCreate(BaseModel):
    """Schema for submitting a parcel"""
    # Older clients send the owner as ``created_by``
    email: str = Field(validation_alias=AliasChoices("email", "created_by"))
    title: Optional[str] = None
    parcel_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("parcel_type", "type"))
    weight: Optional[Decimal] = Field(default=None, ge=0)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    tracking_id: Optional[str] = None
    delivery_status: Optional[str] = None

    sender_name: Optional[str] = None
    sender_contact: Optional[str] = None
    sender_region: Optional[str] = None
    sender_address: Optional[str] = None

    receiver_name: Optional[str] = None
    receiver_contact: Optional[str] = None
    receiver_region: Optional[str] = None
    receiver_address: Optional[str] = None

    @field_validator(
        "title", "sender_name", "sender_region", "receiver_name", "receiver_region",
        "sender_address", "receiver_address",
    )
    @classmethod
    def sanitize_text(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v, max_length=500)


class ParcelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tracking_id: str
    email: str
    title: Optional[str] = None
    parcel_type: Optional[str] = None
    weight: Optional[Decimal] = None
    cost: Optional[Decimal] = None
    sender_name: Optional[str] = None
    sender_contact: Optional[str] = None
    sender_region: Optional[str] = None
    sender_address: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_contact: Optional[str] = None
    receiver_region: Optional[str] = None
    receiver_address: Optional[str] = None
    payment_status: PaymentStatus
    delivery_status: str
    transaction_id: Optional[str] = Field(default=None, serialization_alias="transactionId")
    paid_at: Optional[datetime] = Field(default=None, serialization_alias="paidAt")
    creation_timestamp: datetime


class InsertResult(BaseModel):
    acknowledged: bool = True
    inserted_id: str = Field(serialization_alias="insertedId")


class DeleteResult(BaseModel):
    acknowledged: bool = True
    deleted_count: int = Field(serialization_alias="deletedCount")


@router.get(
    "",
    response_model=List[ParcelResponse],
    summary="List parcels",
    description="All parcels, or only those owned by `email`, newest first. Requires a bearer token.",
    responses={
        200: {"description": "Parcels found"},
        401: {"description": "Missing bearer token"},
        403: {"description": "Token rejected"},
    },
)
async def list_parcels(
    email: Optional[str] = Query(None, description="Owner e-mail filter"),
    claims: TokenClaims = Depends(verify_bearer_token),
    db: AsyncSession = Depends(get_db),
) -> List[ParcelResponse]:
    service = ParcelService(db)
    return await service.list_parcels(email)


@router.post(
    "",
    response_model=InsertResult,
    status_code=201,
    summary="Submit a parcel",
    description="Creates an unpaid parcel with a generated tracking id.",
    responses={
        201: {"description": "Parcel created"},
        400: {"description": "Validation error in request data"},
    },
)
async def create_parcel(
    parcel_data: ParcelCreate,
    db: AsyncSession = Depends(get_db),
) -> InsertResult:
    service = ParcelService(db)
    fields = parcel_data.model_dump(exclude={"email"}, exclude_none=True)
    parcel = await service.create_parcel(parcel_data.email, **fields)
    return InsertResult(inserted_id=parcel.id)


@router.get(
    "/{parcel_id}",
    response_model=ParcelResponse,
    summary="Get parcel by ID",
    responses={
        200: {"description": "Parcel found"},
        400: {"description": "Malformed parcel ID"},
        404: {"description": "Parcel not found"},
    },
)
async def get_parcel(
    parcel_id: str,
    db: AsyncSession = Depends(get_db),
) -> ParcelResponse:
    service = ParcelService(db)
    return await service.get_parcel(parcel_id)


@router.delete(
    "/{parcel_id}",
    response_model=DeleteResult,
    summary="Delete parcel by ID",
    description="Removes the parcel. Payment history for it is kept.",
    responses={
        200: {"description": "Parcel deleted"},
        400: {"description": "Malformed parcel ID"},
        404: {"description": "Parcel not found"},
    },
)
async def delete_parcel(
    parcel_id: str,
    db: AsyncSession = Depends(get_db),
) -> DeleteResult:
    service = ParcelService(db)
    await service.delete_parcel(parcel_id)
    return DeleteResult(deleted_count=1)
