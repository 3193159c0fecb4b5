"""Authentication API v1 endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field

from membership.api.rate_limit import LOGIN_LIMIT, REGISTER_LIMIT, client_ip, limiter
from membership.auth.local import auth_service
from membership.auth.middleware import ADMIN_ROLES, AuthContext, get_auth_context, get_bearer_token
from membership.logging_config import get_logger
from membership.profiles.service import profile_service, serialize_profile

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ==================== MODELS ====================


class RegisterRequest(BaseModel):
    """Registration request."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=32)
    company_name: str | None = Field(default=None, max_length=200)
    vat_number: str | None = Field(default=None, max_length=20)
    region: str | None = Field(default=None, max_length=50)
    user_id: int | None = Field(default=None, ge=1)
    referral_code: str | None = Field(default=None, max_length=16)


class LoginRequest(BaseModel):
    """Login request."""
    email: EmailStr
    password: str
    remember_me: bool = False


class ReferralOutcome(BaseModel):
    status: str
    code_used: str | None = None


class IdentityResponse(BaseModel):
    id: int
    username: str
    email: str
    is_active: bool


class TokenResponse(BaseModel):
    """Token plus the authenticated profile."""
    token: str
    token_type: str = "bearer"
    profile: dict[str, Any]
    identity: IdentityResponse
    referral: ReferralOutcome | None = None


def _client(request: Request) -> tuple[str, str | None]:
    return client_ip(request), request.headers.get("user-agent")


def _identity(identity) -> IdentityResponse:
    return IdentityResponse(
        id=identity.id,
        username=identity.username,
        email=identity.email,
        is_active=identity.is_active,
    )


# ==================== ENDPOINTS ====================


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(REGISTER_LIMIT)
async def register(request: Request, body: RegisterRequest, ref: str | None = None):
    """Register a profile and its login identity.

    The referral code may come from the `ref` query parameter (share
    link) or the request body. An unknown code does not fail the
    registration; the outcome is reported in `referral.status`.
    """
    ip, user_agent = _client(request)
    data = body.model_dump(exclude={"password", "referral_code"}, exclude_none=True)

    result = auth_service.register(
        data,
        password=body.password,
        referral_code=ref or body.referral_code,
        ip=ip,
        user_agent=user_agent,
    )

    return TokenResponse(
        token=result.token,
        profile=serialize_profile(result.profile),
        identity=_identity(result.identity),
        referral=ReferralOutcome(status=result.referral_status.value, code_used=result.code_used),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_LIMIT)
async def login(request: Request, body: LoginRequest):
    """Login with email and password."""
    ip, user_agent = _client(request)
    result = auth_service.login(
        body.email,
        body.password,
        ip=ip,
        user_agent=user_agent,
        remember_me=body.remember_me,
    )
    return TokenResponse(
        token=result.token,
        profile=serialize_profile(result.profile),
        identity=_identity(result.identity),
    )


@router.post("/login/dashboard", response_model=TokenResponse)
@limiter.limit(LOGIN_LIMIT)
async def login_dashboard(request: Request, body: LoginRequest):
    """Login to the admin dashboard. Only admin and superAdmin profiles."""
    ip, user_agent = _client(request)
    result = auth_service.login(
        body.email,
        body.password,
        ip=ip,
        user_agent=user_agent,
        remember_me=body.remember_me,
        allowed_roles=ADMIN_ROLES,
    )
    return TokenResponse(
        token=result.token,
        profile=serialize_profile(result.profile),
        identity=_identity(result.identity),
    )


@router.post("/logout")
async def logout(
    ctx: AuthContext = Depends(get_auth_context),
    token: str | None = Depends(get_bearer_token),
):
    """Close the current session."""
    closed = auth_service.logout(ctx, token)
    return {"success": True, "session_closed": closed}


@router.get("/me")
async def me(ctx: AuthContext = Depends(get_auth_context)):
    """Current profile and the roles carried by the token."""
    profile = profile_service.get_profile(ctx.profile_id)
    return {"profile": serialize_profile(profile), "roles": list(ctx.roles)}
