"""Bank account API v1 endpoints."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field

from membership.auth.middleware import AuthContext, get_auth_context
from membership.banking.service import bank_account_service, serialize_account
from membership.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/bank-accounts", tags=["bank-accounts"])


# ==================== MODELS ====================


class CreateBankAccountRequest(BaseModel):
    """Bank account registration. The IBAN is encrypted before storage."""
    holder_name: str = Field(..., min_length=1, max_length=120)
    iban: str = Field(..., min_length=15, max_length=64)
    email: EmailStr | None = None
    bic: str | None = Field(default=None, max_length=11)
    bank_name: str | None = Field(default=None, max_length=150)
    country: str | None = Field(default=None, max_length=2)
    currency: str | None = Field(default=None, max_length=3)


class ReplaceIbanRequest(BaseModel):
    iban: str = Field(..., min_length=15, max_length=64)


# ==================== ENDPOINTS ====================


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bank_account(
    body: CreateBankAccountRequest,
    ctx: AuthContext = Depends(get_auth_context),
):
    """Register a bank account for the caller."""
    account = bank_account_service.create_account(
        ctx.profile_id,
        ctx.email,
        body.model_dump(exclude_none=True),
    )
    return serialize_account(account)


@router.get("/confirmation")
async def get_confirmation(reveal: int = 0, ctx: AuthContext = Depends(get_auth_context)):
    """Primary account of the caller with a masked IBAN.

    Pass `reveal=1` to include the full IBAN.
    """
    return bank_account_service.confirmation_view(ctx.profile_id, reveal=reveal == 1)


@router.get("/confirmation/{profile_id}")
async def get_confirmation_for_profile(
    profile_id: int,
    reveal: int = 0,
    ctx: AuthContext = Depends(get_auth_context),
):
    """Primary account of a profile, for its owner or an admin settling payouts."""
    return bank_account_service.confirmation_view(
        profile_id,
        reveal=reveal == 1,
        requester_id=ctx.profile_id,
        is_admin=ctx.is_admin,
    )


@router.put("/{account_id}/iban")
async def replace_iban(
    account_id: int,
    body: ReplaceIbanRequest,
    ctx: AuthContext = Depends(get_auth_context),
):
    """Replace the IBAN of one of the caller's accounts."""
    account = bank_account_service.replace_iban(ctx.profile_id, account_id, body.iban)
    return serialize_account(account)
