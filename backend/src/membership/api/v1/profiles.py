"""Profile API v1 endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from membership.auth.middleware import ADMIN_ROLES, AuthContext, get_auth_context, require_roles
from membership.errors import ForbiddenError
from membership.logging_config import get_logger
from membership.profiles.service import profile_service, serialize_profile

logger = get_logger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


# ==================== MODELS ====================


class UpdateProfileRequest(BaseModel):
    """Profile fields the owner may change."""
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=32)
    company_name: str | None = Field(default=None, max_length=200)
    vat_number: str | None = Field(default=None, max_length=20)
    region: str | None = Field(default=None, max_length=50)


class AssignRoleRequest(BaseModel):
    role: str


# ==================== ENDPOINTS ====================


@router.patch("/me/sign")
async def sign_document(ctx: AuthContext = Depends(get_auth_context)):
    """Sign the membership document. Signing twice is a no-op."""
    profile = profile_service.sign_document(ctx.profile_id)
    return serialize_profile(profile)


@router.get("/{profile_id}")
async def get_profile(profile_id: int, ctx: AuthContext = Depends(get_auth_context)):
    """Get a profile. Plain users may only read their own."""
    if profile_id != ctx.profile_id and not ctx.is_admin:
        raise ForbiddenError("Not allowed to view this profile")
    return serialize_profile(profile_service.get_profile(profile_id))


@router.patch("/{profile_id}")
async def update_profile(
    profile_id: int,
    body: UpdateProfileRequest,
    ctx: AuthContext = Depends(get_auth_context),
):
    """Update profile fields."""
    profile = profile_service.update_profile(
        profile_id,
        body.model_dump(exclude_unset=True),
        requester_id=ctx.profile_id,
        is_admin=ctx.is_admin,
    )
    return serialize_profile(profile)


@router.put("/{profile_id}/role")
async def assign_role(
    profile_id: int,
    body: AssignRoleRequest,
    ctx: AuthContext = Depends(require_roles(*ADMIN_ROLES)),
):
    """Assign the user or admin role. superAdmin is never assignable here."""
    profile = profile_service.assign_role(profile_id, body.role)
    logger.info("role_assigned_via_api", profile_id=profile_id, by=ctx.profile_id, role=body.role)
    return serialize_profile(profile)
