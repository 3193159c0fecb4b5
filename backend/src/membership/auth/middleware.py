"""Authorization gate and role checks for FastAPI."""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from fastapi import Depends, Header
from sqlalchemy import select

from membership.auth.tokens import TokenExpiredError, TokenInvalidError, TokenService, token_service
from membership.errors import ForbiddenError, UnauthorizedError
from membership.logging_config import get_logger
from membership.storage.db import db
from membership.storage.models import Profile, ProfileRole

logger = get_logger(__name__)

ADMIN_ROLES = (ProfileRole.ADMIN.value, ProfileRole.SUPER_ADMIN.value)


@dataclass(frozen=True)
class AuthContext:
    """Identity attached to an authorized request."""
    profile_id: int
    email: str | None
    sub: str | None
    roles: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_admin(self) -> bool:
        return has_required_role(ADMIN_ROLES, self.roles)


def has_required_role(required: Iterable[str], held: Iterable[str]) -> bool:
    """True when the caller holds at least one of the required roles."""
    return bool(set(required) & set(held))


def parse_bearer(header: str | None) -> str | None:
    """Token from an `Authorization: Bearer <token>` header.

    The scheme is matched case-insensitively (RFC 7235).
    """
    if not header:
        return None
    parts = header.strip().split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def _profile_id_for_email(email: str) -> int | None:
    with db.session() as session:
        return session.scalar(select(Profile.id).where(Profile.email == email))


def _coerce_roles(claim: Any) -> tuple[str, ...]:
    if claim is None:
        return ()
    if isinstance(claim, (list, tuple)):
        return tuple(str(r) for r in claim)
    return (str(claim),)


class AuthorizationGate:
    """Turn an Authorization header into an AuthContext or a typed denial."""

    def __init__(
        self,
        tokens: TokenService | None = None,
        profile_lookup: Callable[[str], int | None] | None = None,
    ):
        """Initialize gate.

        Args:
            tokens: Token service (defaults to the shared one)
            profile_lookup: Email to profile id resolver for tokens
                without a profileId claim
        """
        self.tokens = tokens or token_service
        self.profile_lookup = profile_lookup or _profile_id_for_email

    def authorize(self, header: str | None) -> AuthContext:
        """Authorize a request.

        Args:
            header: Raw Authorization header value

        Returns:
            Authorization context

        Raises:
            UnauthorizedError: Missing, invalid or expired token
            ForbiddenError: Token email does not resolve to a profile
        """
        token = parse_bearer(header)
        if not token:
            raise UnauthorizedError("missing or invalid bearer")

        try:
            payload = self.tokens.decode(token)
        except TokenExpiredError:
            raise UnauthorizedError("token expired")
        except TokenInvalidError:
            raise UnauthorizedError("invalid token")

        email = payload.get("email")
        if isinstance(email, str):
            email = email.strip().lower() or None
        else:
            email = None

        raw_profile_id = payload.get("profileId")
        if raw_profile_id in (None, ""):
            if not email:
                raise UnauthorizedError("missing profile context")
            profile_id = self.profile_lookup(email)
            if profile_id is None:
                logger.warning("auth_profile_not_found", email=email)
                raise ForbiddenError("account not found or disabled")
        else:
            try:
                profile_id = int(raw_profile_id)
            except (TypeError, ValueError):
                raise UnauthorizedError("invalid token")

        sub = payload.get("sub")
        return AuthContext(
            profile_id=profile_id,
            email=email,
            sub=str(sub) if sub is not None else None,
            roles=_coerce_roles(payload.get("role")),
            raw=payload,
        )


# Gate instance
gate = AuthorizationGate()


async def get_auth_context(authorization: str | None = Header(default=None)) -> AuthContext:
    """FastAPI dependency: authorize the request or raise."""
    return gate.authorize(authorization)


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    """Raw bearer token, for endpoints that act on the session itself."""
    return parse_bearer(authorization)


def require_roles(*roles: str):
    """Build a dependency that admits only callers holding one of `roles`.

    Usage:
        @router.post("/awards")
        async def create(ctx: AuthContext = Depends(require_roles("admin", "superAdmin"))):
            ...
    """

    async def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not has_required_role(roles, ctx.roles):
            logger.warning("role_denied", profile_id=ctx.profile_id, required=list(roles))
            raise ForbiddenError("insufficient role")
        return ctx

    return dependency
