"""Signed access tokens (JWT, HS256)."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from membership.errors import ConfigurationError
from membership.logging_config import get_logger
from membership.settings import settings

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"


class TokenError(Exception):
    """Token could not be accepted."""
    kind = "invalid"


class TokenExpiredError(TokenError):
    """Token signature is valid but its lifetime has elapsed."""
    kind = "expired"


class TokenInvalidError(TokenError):
    """Bad signature, malformed structure or missing mandatory claims."""
    kind = "invalid"


@dataclass
class AccessClaims:
    """Claims carried by an access token."""
    sub: str
    profile_id: str
    email: str
    uid: int | None = None
    role: list[str] = field(default_factory=list)
    remember_me: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        if not self.profile_id:
            raise ValueError("profile_id claim is mandatory")
        payload: dict[str, Any] = {
            "sub": str(self.sub),
            "profileId": str(self.profile_id),
            "email": self.email.strip().lower(),
        }
        if self.uid is not None:
            payload["uid"] = self.uid
        if self.role:
            payload["role"] = list(self.role)
        if self.remember_me is not None:
            payload["rememberMe"] = self.remember_me
        return payload


class TokenService:
    """Issue and verify access tokens."""

    def __init__(self, secret_key: str | None = None, default_ttl: timedelta | None = None):
        """Initialize token service.

        Args:
            secret_key: Signing secret (defaults to settings)
            default_ttl: Token lifetime (defaults to settings)
        """
        self._secret_key = secret_key
        self.default_ttl = default_ttl or timedelta(days=settings.access_token_ttl_days)

    @property
    def secret_key(self) -> str:
        key = self._secret_key or settings.jwt_access_secret
        if not key:
            raise ConfigurationError("JWT_ACCESS_SECRET is not set")
        return key

    def issue(self, claims: AccessClaims, ttl: timedelta | None = None) -> str:
        """Create a signed access token.

        Args:
            claims: Identity and role claims
            ttl: Optional lifetime override

        Returns:
            JWT token string
        """
        now = datetime.utcnow()
        payload = claims.to_payload()
        payload["iat"] = now
        payload["exp"] = now + (ttl if ttl is not None else self.default_ttl)
        return jwt.encode(payload, self.secret_key, algorithm=JWT_ALGORITHM)

    def decode(self, token: str) -> dict[str, Any]:
        """Check signature and expiry only.

        Raises:
            TokenExpiredError: Lifetime elapsed
            TokenInvalidError: Anything else
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[JWT_ALGORITHM])
        except ExpiredSignatureError as e:
            raise TokenExpiredError("token expired") from e
        except JWTError as e:
            logger.debug("token_verification_failed", error=str(e))
            raise TokenInvalidError("invalid token") from e
        if not isinstance(payload, dict):
            raise TokenInvalidError("invalid token")
        return payload

    def verify(self, token: str) -> dict[str, Any]:
        """Decode a token and require the profileId claim.

        Returns:
            Token payload
        """
        payload = self.decode(token)
        if not payload.get("profileId"):
            raise TokenInvalidError("missing profileId claim")
        return payload


# Singleton instance
token_service = TokenService()
