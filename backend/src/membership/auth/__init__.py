"""Authentication: password hashing, access tokens, sessions and the authorization gate."""

from membership.auth.local import LocalAuthService, auth_service
from membership.auth.middleware import AuthContext, AuthorizationGate, get_auth_context, require_roles
from membership.auth.passwords import hash_password, verify_password
from membership.auth.tokens import AccessClaims, TokenService, token_service

__all__ = [
    "LocalAuthService",
    "auth_service",
    "AuthContext",
    "AuthorizationGate",
    "get_auth_context",
    "require_roles",
    "hash_password",
    "verify_password",
    "AccessClaims",
    "TokenService",
    "token_service",
]
