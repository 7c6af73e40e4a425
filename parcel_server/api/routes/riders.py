"""
Rider API Routes
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_server.db.database import get_db
from parcel_server.db.models.rider import RiderStatus
from parcel_server.domain.services.rider_service import RiderService

router = APIRouter()


class RiderApply(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=16, le=100)
    region: Optional[str] = None
    district: Optional[str] = None
    nid: Optional[str] = None
    bike_brand: Optional[str] = None
    bike_registration: Optional[str] = None


class RiderApprove(BaseModel):
    email: Optional[str] = None


class RiderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    age: Optional[int] = None
    region: Optional[str] = None
    district: Optional[str] = None
    nid: Optional[str] = None
    bike_brand: Optional[str] = None
    bike_registration: Optional[str] = None
    status: RiderStatus
    submitted_at: datetime
    approved_at: Optional[datetime] = None


class ApproveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    matched_count: int = Field(alias="matchedCount")
    modified_count: int = Field(alias="modifiedCount")
    role_updated: bool = Field(alias="roleUpdated")


@router.post(
    "",
    status_code=201,
    summary="Apply to become a rider",
    description="One application per e-mail. A repeat application returns 200 without inserting.",
    responses={
        200: {"description": "You have already applied"},
        201: {"description": "Application submitted"},
        400: {"description": "Email is required"},
    },
)
async def apply_as_rider(
    application_data: RiderApply,
    db: AsyncSession = Depends(get_db),
):
    service = RiderService(db)
    details = application_data.model_dump(exclude={"email"}, exclude_none=True)
    application, inserted = await service.apply(application_data.email, **details)

    if not inserted:
        return JSONResponse(
            status_code=200,
            content={"inserted": False, "message": "You have already applied"},
        )
    return {
        "inserted": True,
        "insertedId": application.id,
        "message": "Application submitted",
    }


@router.get(
    "",
    response_model=List[RiderResponse],
    summary="List rider applications",
    description="Optionally filtered by status, oldest first.",
)
async def list_riders(
    status: Optional[str] = Query(None, description="pending or approved"),
    db: AsyncSession = Depends(get_db),
) -> List[RiderResponse]:
    service = RiderService(db)
    return await service.list_applications(status)


@router.patch(
    "/approve/{application_id}",
    response_model=ApproveResponse,
    summary="Approve a rider application",
    description="Approves the application and, when `email` is given, sets that user's role to rider.",
    responses={
        200: {"description": "Application approved"},
        400: {"description": "Malformed application ID"},
        404: {"description": "Application not found"},
    },
)
async def approve_rider(
    application_id: str,
    approve_data: Optional[RiderApprove] = Body(default=None),
    db: AsyncSession = Depends(get_db),
) -> ApproveResponse:
    service = RiderService(db)
    result = await service.approve(application_id, approve_data.email if approve_data else None)
    return ApproveResponse(
        message="Rider approved",
        matched_count=result.matched_count,
        modified_count=result.modified_count,
        role_updated=result.role_updated,
    )
