"""Referral API v1 endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from membership.auth.middleware import AuthContext, get_auth_context
from membership.errors import ForbiddenError, NotFoundError
from membership.logging_config import get_logger
from membership.profiles.service import profile_service
from membership.referral.service import referral_service

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


class ReferralCodeResponse(BaseModel):
    """Response with the caller's referral code."""
    code: str
    link: str
    referrals_count: int


@router.get("/code", response_model=ReferralCodeResponse)
async def get_referral_code(ctx: AuthContext = Depends(get_auth_context)):
    """Get the caller's referral code and share link."""
    profile = profile_service.get_profile(ctx.profile_id)
    if not profile.referral_code:
        raise NotFoundError("Profile has no referral code")

    return ReferralCodeResponse(
        code=profile.referral_code,
        link=referral_service.referral_link(profile.referral_code),
        referrals_count=profile.referrals_count,
    )


@router.get("/tree/{profile_id}")
async def get_referral_tree(profile_id: int, ctx: AuthContext = Depends(get_auth_context)):
    """Referral tree below a profile, with the total descendant count.

    Users may read their own tree; admins any tree.
    """
    if profile_id != ctx.profile_id and not ctx.is_admin:
        raise ForbiddenError("Not allowed to view this referral tree")

    tree = referral_service.get_referral_tree(profile_id)
    return tree.to_dict()
