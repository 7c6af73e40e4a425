"""
User Service - account upsert, profile and role updates, search
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, or_

from parcel_server.db.models.user import User, UserRole
from parcel_server.core.config import settings
from parcel_server.core.exceptions import ErrorCode, UserNotFoundError, ValidationException
from parcel_server.core.logging import get_logger, mask_email
from parcel_server.core.validation import EmailValidator, ObjectIdValidator, TextSanitizer

logger = get_logger(__name__)

# Only these columns leave the service through search
SEARCH_PROJECTION = (
    User.id,
    User.email,
    User.uid,
    User.name,
    User.role,
    User.created_at,
    User.last_log_in,
)

PROFILE_FIELDS = {"name", "photo_url", "uid", "last_log_in"}


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int


class UserService:
    """Service for managing users"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert_by_email(
        self,
        email: Optional[str],
        name: Optional[str] = None,
        uid: Optional[str] = None,
        photo_url: Optional[str] = None,
        role: Optional[str] = None,
        last_log_in: Optional[datetime] = None,
    ) -> Tuple[User, bool]:
        """
        Create the user unless one with this e-mail exists.

        Returns:
            (user, inserted) - an existing user is returned unchanged
        """
        address = EmailValidator.require(email)

        existing = await self.get_by_email(address)
        if existing:
            return existing, False

        now = datetime.utcnow()
        user = User(
            email=address,
            name=TextSanitizer.sanitize(name, max_length=150) or None,
            uid=uid,
            photo_url=photo_url,
            role=self._parse_role(role) if role else UserRole.USER,
            created_at=now,
            last_log_in=last_log_in or now,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Concurrent insert for the same e-mail won the unique constraint
            await self.db.rollback()
            existing = await self.get_by_email(address)
            if existing is None:
                raise
            return existing, False

        await self.db.refresh(user)
        logger.info("User created", extra_data={"user_id": user.id, "email": mask_email(address)})
        return user, True

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == EmailValidator.normalize(email))
        )
        return result.scalar_one_or_none()

    async def get_by_uid(self, uid: str) -> User:
        result = await self.db.execute(select(User).where(User.uid == uid).limit(1))
        user = result.scalar_one_or_none()
        if not user:
            raise UserNotFoundError(uid)
        return user

    async def update_profile(self, user_id: str, fields: dict[str, Any]) -> UpdateResult:
        """Patch profile fields; ValidationException for a bad id or nothing to update"""
        uid = ObjectIdValidator.require(user_id, "user ID", field="id")
        values = {k: v for k, v in fields.items() if k in PROFILE_FIELDS and v is not None}
        if "name" in values:
            values["name"] = TextSanitizer.sanitize(values["name"], max_length=150)
        if not values:
            raise ValidationException("No updatable fields supplied")

        return await self._apply_update(uid, values)

    async def update_role(self, user_id: str, role: Optional[str]) -> UpdateResult:
        uid = ObjectIdValidator.require(user_id, "user ID", field="id")
        new_role = self._parse_role(role)

        result = await self._apply_update(uid, {"role": new_role})
        logger.info(
            "User role updated",
            extra_data={"user_id": uid, "role": new_role.value, "modified": result.modified_count}
        )
        return result

    async def search(self, term: Optional[str], limit: Optional[int] = None) -> List[dict[str, Any]]:
        """Case-insensitive partial match on e-mail or uid, capped and projected"""
        needle = TextSanitizer.sanitize(term, max_length=255)
        if not needle:
            raise ValidationException("Missing search term", field="term")

        cap = min(limit or settings.USER_SEARCH_LIMIT, settings.USER_SEARCH_LIMIT)
        result = await self.db.execute(
            select(*SEARCH_PROJECTION)
            .where(
                or_(
                    User.email.icontains(needle, autoescape=True),
                    User.uid.icontains(needle, autoescape=True),
                )
            )
            .order_by(User.created_at.desc(), User.id.asc())
            .limit(cap)
        )
        return [dict(row._mapping) for row in result.all()]

    async def _apply_update(self, user_id: str, values: dict[str, Any]) -> UpdateResult:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        changed = {k: v for k, v in values.items() if getattr(user, k) != v}
        if not changed:
            return UpdateResult(matched_count=1, modified_count=0)

        for key, value in changed.items():
            setattr(user, key, value)
        await self.db.commit()
        return UpdateResult(matched_count=1, modified_count=1)

    @staticmethod
    def _parse_role(role: Optional[str]) -> UserRole:
        try:
            return UserRole((role or "").strip().lower())
        except ValueError:
            raise ValidationException(
                "Invalid role",
                field="role",
                details={"allowed": [r.value for r in UserRole]},
                error_code=ErrorCode.INVALID_USER_ROLE,
            )
