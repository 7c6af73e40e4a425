"""
Rider Service - rider onboarding applications and approval
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, update

from parcel_server.db.models.rider import RiderApplication, RiderStatus
from parcel_server.db.models.user import User, UserRole
from parcel_server.core.exceptions import RiderApplicationNotFoundError, ValidationException
from parcel_server.core.logging import get_logger, mask_email
from parcel_server.core.validation import EmailValidator, ObjectIdValidator, TextSanitizer

logger = get_logger(__name__)

APPLICATION_FIELDS = {
    "name", "phone", "age", "region", "district", "nid", "bike_brand", "bike_registration",
}


@dataclass
class ApprovalResult:
    """Outcome of approving one application"""
    application: RiderApplication
    matched_count: int
    modified_count: int
    role_updated: bool = False


class RiderService:
    """Applications go pending -> approved; approval can promote the applicant's user role"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def apply(self, email: Optional[str], **details: Any) -> Tuple[RiderApplication, bool]:
        """
        Submit an application.

        Returns:
            (application, inserted) - an existing application for the e-mail,
            whatever its status, is returned instead of creating a second one
        """
        address = EmailValidator.require(email)

        existing = await self._get_by_email(address)
        if existing:
            return existing, False

        data = {k: v for k, v in details.items() if k in APPLICATION_FIELDS and v is not None}
        for key, value in data.items():
            if isinstance(value, str):
                data[key] = TextSanitizer.sanitize(value, max_length=150)

        application = RiderApplication(
            email=address,
            status=RiderStatus.PENDING,
            submitted_at=datetime.utcnow(),
            **data,
        )
        self.db.add(application)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self._get_by_email(address)
            if existing is None:
                raise
            return existing, False

        await self.db.refresh(application)
        logger.info(
            "Rider application submitted",
            extra_data={"application_id": application.id, "email": mask_email(address)}
        )
        return application, True

    async def list_applications(self, status: Optional[str] = None) -> List[RiderApplication]:
        """Applications, optionally filtered by status, oldest first"""
        query = select(RiderApplication)
        if status:
            try:
                wanted = RiderStatus(status.strip().lower())
            except ValueError:
                raise ValidationException(
                    "Invalid status",
                    field="status",
                    details={"allowed": [s.value for s in RiderStatus]},
                )
            query = query.where(RiderApplication.status == wanted)

        result = await self.db.execute(
            query.order_by(RiderApplication.submitted_at.asc(), RiderApplication.id.asc())
        )
        return list(result.scalars().all())

    async def approve(self, application_id: str, email: Optional[str] = None) -> ApprovalResult:
        """
        Approve an application and, when ``email`` is given, make that user a rider.

        Both writes commit together. Approving an approved application leaves it
        unchanged but still applies the role promotion.
        """
        app_id = ObjectIdValidator.require(application_id, "application ID", field="id")
        address = EmailValidator.require(email) if email else None

        application = await self.db.get(RiderApplication, app_id)
        if application is None:
            raise RiderApplicationNotFoundError(app_id)

        modified = 0
        if application.status != RiderStatus.APPROVED:
            application.status = RiderStatus.APPROVED
            application.approved_at = datetime.utcnow()
            modified = 1

        role_updated = False
        if address:
            promoted = await self.db.execute(
                update(User)
                .where(User.email == address)
                .values(role=UserRole.RIDER)
            )
            role_updated = promoted.rowcount > 0
            if not role_updated:
                logger.warning(
                    "Approved rider has no user account",
                    extra_data={"application_id": app_id, "email": mask_email(address)}
                )

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Rider application approved",
            extra_data={
                "application_id": app_id,
                "modified": modified,
                "role_updated": role_updated,
            }
        )
        return ApprovalResult(
            application=application,
            matched_count=1,
            modified_count=modified,
            role_updated=role_updated,
        )

    async def _get_by_email(self, email: str) -> Optional[RiderApplication]:
        result = await self.db.execute(
            select(RiderApplication).where(RiderApplication.email == email)
        )
        return result.scalar_one_or_none()
