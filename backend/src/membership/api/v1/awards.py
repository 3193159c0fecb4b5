"""Award API v1 endpoints."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, StrictInt

from membership.auth.middleware import ADMIN_ROLES, AuthContext, get_auth_context, require_roles
from membership.awards.service import award_service, serialize_award
from membership.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/awards", tags=["awards"])


class CreateAwardRequest(BaseModel):
    """Grant points to a profile."""
    assigned_to: int
    points: StrictInt = Field(..., ge=0)
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=1000)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_award(
    body: CreateAwardRequest,
    ctx: AuthContext = Depends(require_roles(*ADMIN_ROLES)),
):
    """Create an award. Admins only."""
    award = award_service.create(
        grantor_id=ctx.profile_id,
        recipient_id=body.assigned_to,
        points=body.points,
        title=body.title,
        description=body.description,
    )
    return serialize_award(award)


@router.get("/{award_id}")
async def get_award(award_id: int, ctx: AuthContext = Depends(get_auth_context)):
    """Get an award. Plain users may only read awards assigned to them."""
    award = award_service.get_award(award_id, ctx.profile_id, is_admin=ctx.is_admin)
    return serialize_award(award)


@router.patch("/{award_id}/redeem")
async def redeem_award(award_id: int, ctx: AuthContext = Depends(get_auth_context)):
    """Redeem one of the caller's awards."""
    award = award_service.redeem(ctx.profile_id, award_id)
    return serialize_award(award)


@router.patch("/{award_id}/paid")
async def mark_award_paid(
    award_id: int,
    ctx: AuthContext = Depends(require_roles(*ADMIN_ROLES)),
):
    """Mark an award as paid. Admins only."""
    award = award_service.mark_paid(award_id)
    logger.info("award_paid_via_api", award_id=award_id, by=ctx.profile_id)
    return serialize_award(award)
