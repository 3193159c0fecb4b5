"""Profile reads, self-service updates, document signing and role assignment."""

from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from membership.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from membership.logging_config import get_logger
from membership.storage.db import db, unique_violation_field
from membership.storage.models import AuthUser, Profile, ProfileRole

logger = get_logger(__name__)

# Fields a profile owner may change
UPDATABLE_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "phone",
    "company_name",
    "vat_number",
    "region",
)

ASSIGNABLE_ROLES = (ProfileRole.USER.value, ProfileRole.ADMIN.value)


def serialize_profile(profile: Profile) -> dict[str, Any]:
    role = profile.role.value if isinstance(profile.role, ProfileRole) else profile.role
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "email": profile.email,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "phone": profile.phone,
        "company_name": profile.company_name,
        "vat_number": profile.vat_number,
        "region": profile.region,
        "role": role,
        "referral_code": profile.referral_code,
        "referred_by": profile.referred_by_id,
        "referrals_count": profile.referrals_count,
        "signed": profile.signed,
        "signed_at": profile.signed_at.isoformat() if profile.signed_at else None,
        "verified": profile.verified,
        "date_joined": profile.date_joined.isoformat() if profile.date_joined else None,
        "last_login": profile.last_login.isoformat() if profile.last_login else None,
    }


class ProfileService:
    """Service for profile management."""

    def __init__(self):
        """Initialize profile service."""
        self.logger = get_logger(__name__)

    def get_profile(self, profile_id: int) -> Profile:
        """Fetch a profile.

        Raises:
            NotFoundError: Profile does not exist
        """
        with db.session() as session:
            profile = session.get(Profile, profile_id)
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    def get_by_email(self, email: str) -> Profile | None:
        with db.session() as session:
            return session.query(Profile).filter(Profile.email == email.strip().lower()).first()

    def update_profile(
        self,
        profile_id: int,
        changes: dict[str, Any],
        requester_id: int,
        is_admin: bool = False,
    ) -> Profile:
        """Apply whitelisted field changes.

        Args:
            profile_id: Target profile
            changes: Field values; unknown keys are ignored
            requester_id: Profile making the change
            is_admin: Requester holds an admin role

        Returns:
            Updated profile

        Raises:
            ForbiddenError: Requester neither owns the profile nor is admin
            NotFoundError: Profile does not exist
            BadRequestError: Email set to null
            ConflictError: New email already taken
        """
        if profile_id != requester_id and not is_admin:
            raise ForbiddenError("Not allowed to modify this profile")

        updates = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if "email" in updates:
            if not updates["email"]:
                raise BadRequestError("Email cannot be empty", field="email")
            updates["email"] = str(updates["email"]).strip().lower()

        try:
            with db.session() as session:
                profile = session.get(Profile, profile_id)
                if not profile:
                    raise NotFoundError("Profile not found")

                old_email = profile.email
                for name, value in updates.items():
                    setattr(profile, name, value)
                profile.updated_at = datetime.utcnow()

                # Login identity keeps the same email as its profile
                if "email" in updates and updates["email"] != old_email:
                    session.query(AuthUser).filter(
                        or_(AuthUser.profile_id == profile_id, AuthUser.email == old_email)
                    ).update(
                        {AuthUser.email: updates["email"], AuthUser.username: updates["email"]},
                        synchronize_session=False,
                    )

                session.commit()
                session.refresh(profile)
        except IntegrityError as e:
            if (
                unique_violation_field(e, "profiles", ("email",))
                or unique_violation_field(e, "auth_users", ("email", "username"))
            ):
                raise ConflictError("Email already registered", field="email") from e
            raise

        self.logger.info("profile_updated", profile_id=profile_id, fields=sorted(updates))
        return profile

    def sign_document(self, profile_id: int) -> Profile:
        """Set the signed flag. Signing twice returns the current state."""
        with db.session() as session:
            profile = session.get(Profile, profile_id)
            if not profile:
                raise NotFoundError("Profile not found")

            if profile.signed:
                return profile

            profile.signed = True
            profile.signed_at = datetime.utcnow()
            session.commit()
            session.refresh(profile)

        self.logger.info("document_signed", profile_id=profile_id)
        return profile

    def assign_role(self, target_id: int, role: str) -> Profile:
        """Set the role of a profile to user or admin.

        Raises:
            BadRequestError: superAdmin or unknown role requested
            NotFoundError: Profile does not exist
        """
        if role == ProfileRole.SUPER_ADMIN.value:
            raise BadRequestError("superAdmin cannot be assigned", field="role")
        if role not in ASSIGNABLE_ROLES:
            raise BadRequestError(
                "Invalid role",
                field="role",
                issues=[{"field": "role", "message": f"must be one of: {', '.join(ASSIGNABLE_ROLES)}"}],
            )

        with db.session() as session:
            profile = session.get(Profile, target_id)
            if not profile:
                raise NotFoundError("Profile not found")

            profile.role = ProfileRole(role)
            session.commit()
            session.refresh(profile)

        self.logger.info("role_assigned", profile_id=target_id, role=role)
        return profile


# Singleton instance
profile_service = ProfileService()
