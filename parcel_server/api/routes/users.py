"""
User API Routes
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_server.core.logging import get_logger
from parcel_server.core.validation import sanitized_text_validator
from parcel_server.db.database import get_db
from parcel_server.db.models.user import UserRole
from parcel_server.domain.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter()


class UserCreate(BaseModel):
    """Sent on every sign-in; only the first call for an e-mail creates the user"""
    email: Optional[str] = None
    name: Optional[str] = None
    uid: Optional[str] = None
    photo_url: Optional[str] = None
    role: Optional[str] = None
    last_log_in: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v, max_length=150)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    photo_url: Optional[str] = None
    uid: Optional[str] = None
    last_log_in: Optional[datetime] = None


class RoleUpdate(BaseModel):
    role: Optional[str] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    uid: Optional[str] = None
    name: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None
    last_log_in: Optional[datetime] = None


class UpdateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    matched_count: int = Field(alias="matchedCount")
    modified_count: int = Field(alias="modifiedCount")


@router.post(
    "",
    status_code=201,
    summary="Create user on first sign-in",
    description="Idempotent on e-mail: an existing user is left unchanged and 200 is returned.",
    responses={
        200: {"description": "User already exists"},
        201: {"description": "User created"},
        400: {"description": "Missing or invalid e-mail"},
    },
)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    service = UserService(db)
    user, inserted = await service.upsert_by_email(
        email=user_data.email,
        name=user_data.name,
        uid=user_data.uid,
        photo_url=user_data.photo_url,
        role=user_data.role,
        last_log_in=user_data.last_log_in,
    )

    if not inserted:
        return JSONResponse(
            status_code=200,
            content={"message": "User already exists", "inserted": False},
        )
    return {"message": "User created", "inserted": True, "insertedId": user.id}


@router.get(
    "/search",
    response_model=List[UserResponse],
    summary="Search users",
    description="Case-insensitive partial match on e-mail or uid; at most 10 results.",
    responses={
        200: {"description": "Matching users"},
        400: {"description": "Missing search term"},
    },
)
async def search_users(
    term: Optional[str] = Query(None, description="Part of an e-mail or uid"),
    email: Optional[str] = Query(None, description="Alias of `term` for older clients"),
    db: AsyncSession = Depends(get_db),
) -> List[UserResponse]:
    service = UserService(db)
    return await service.search(term or email)


@router.get(
    "/{uid}",
    response_model=UserResponse,
    summary="Get user by identity uid",
    responses={
        200: {"description": "User found"},
        404: {"description": "User not found"},
    },
)
async def get_user_by_uid(
    uid: str,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    service = UserService(db)
    return await service.get_by_uid(uid)


@router.patch(
    "/{user_id}",
    response_model=UpdateResponse,
    summary="Update user profile",
    responses={
        200: {"description": "Update applied"},
        400: {"description": "Malformed user ID or nothing to update"},
        404: {"description": "User not found"},
    },
)
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
) -> UpdateResponse:
    service = UserService(db)
    result = await service.update_profile(user_id, user_data.model_dump(exclude_none=True))
    return UpdateResponse(
        message="User updated",
        matched_count=result.matched_count,
        modified_count=result.modified_count,
    )


@router.patch(
    "/{user_id}/role",
    response_model=UpdateResponse,
    summary="Change user role",
    description="Role must be one of admin, user, rider.",
    responses={
        200: {"description": "Role updated"},
        400: {"description": "Malformed user ID or invalid role"},
        404: {"description": "User not found"},
    },
)
async def update_user_role(
    user_id: str,
    role_data: RoleUpdate,
    db: AsyncSession = Depends(get_db),
) -> UpdateResponse:
    service = UserService(db)
    result = await service.update_role(user_id, role_data.role)
    return UpdateResponse(
        message=f"User role updated to {role_data.role.strip().lower()}",
        matched_count=result.matched_count,
        modified_count=result.modified_count,
    )
