"""Local authentication service (email/password registration and login)."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError

from membership.auth.middleware import AuthContext
from membership.auth.passwords import hash_password, verify_password
from membership.auth.sessions import SessionStore, session_store
from membership.auth.tokens import AccessClaims, TokenService, token_service
from membership.errors import ConflictError, ForbiddenError, InternalError, UnauthorizedError
from membership.logging_config import get_logger
from membership.referral.service import ReferralService, ReferralStatus, referral_service
from membership.storage.db import db, unique_violation_field
from membership.storage.models import AuthUser, Profile, ProfileRole

logger = get_logger(__name__)

INVALID_CREDENTIALS = "invalid credentials"


@dataclass
class RegistrationResult:
    """Outcome of a successful registration."""
    token: str
    profile: Profile
    identity: AuthUser
    referral_status: ReferralStatus
    code_used: str | None = None


@dataclass
class LoginResult:
    """Outcome of a successful login."""
    token: str
    profile: Profile
    identity: AuthUser


def _role_value(role: Any) -> str:
    return role.value if isinstance(role, ProfileRole) else str(role)


class LocalAuthService:
    """Authentication service for local (email/password) users."""

    def __init__(
        self,
        tokens: TokenService | None = None,
        sessions: SessionStore | None = None,
        referrals: ReferralService | None = None,
    ):
        """Initialize auth service."""
        self.logger = get_logger(__name__)
        self.tokens = tokens or token_service
        self.sessions = sessions or session_store
        self.referrals = referrals or referral_service

    # ==================== TOKENS ====================

    def issue_token(self, identity: AuthUser, profile: Profile, remember_me: bool | None = None) -> str:
        """Create an access token for an identity and its profile."""
        claims = AccessClaims(
            sub=str(identity.id),
            profile_id=str(profile.id),
            email=profile.email,
            uid=profile.user_id,
            role=[_role_value(profile.role)],
            remember_me=remember_me,
        )
        return self.tokens.issue(claims)

    def _record_session(self, profile_id: int, token: str, ip: str | None, user_agent: str | None) -> None:
        """Write the session audit row. Failures are logged, never raised."""
        try:
            self.sessions.record(profile_id, token, ip, user_agent)
        except Exception as e:
            self.logger.warning("session_record_failed", profile_id=profile_id, error=str(e))

    # ==================== REGISTRATION ====================

    def register(
        self,
        data: dict[str, Any],
        password: str,
        referral_code: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> RegistrationResult:
        """Register a profile and its login identity.

        Args:
            data: Profile fields; `email` required
            password: Plain password
            referral_code: Code of the inviting profile, if any
            ip: Client IP
            user_agent: Client user agent

        Returns:
            Token, profile, identity and referral outcome

        Raises:
            ConflictError: Email or user_id already registered
            InternalError: Referral code allocation exhausted
        """
        email = str(data["email"]).strip().lower()
        data = {**data, "email": email}

        creation = self.referrals.create_profile(data, referral_code=referral_code)
        profile = creation.profile

        try:
            with db.session() as session:
                identity = AuthUser(
                    username=email,
                    email=email,
                    password=hash_password(password),
                    first_name=data.get("first_name") or "",
                    last_name=data.get("last_name") or "",
                    profile_id=profile.id,
                )
                session.add(identity)
                session.commit()
                session.refresh(identity)
        except IntegrityError as e:
            self.referrals.delete_profile(profile.id)
            column = unique_violation_field(e, "auth_users", ("email", "username"))
            self.logger.warning("identity_create_conflict", email=email, column=column)
            raise ConflictError("Email already registered", field="email") from e

        token = self.issue_token(identity, profile)
        self._record_session(profile.id, token, ip, user_agent)

        self.logger.info(
            "user_registered",
            profile_id=profile.id,
            identity_id=identity.id,
            referral=creation.referral_status.value,
        )
        return RegistrationResult(
            token=token,
            profile=profile,
            identity=identity,
            referral_status=creation.referral_status,
            code_used=creation.code_used,
        )

    # ==================== LOGIN ====================

    def login(
        self,
        email: str,
        password: str,
        ip: str | None = None,
        user_agent: str | None = None,
        remember_me: bool = False,
        allowed_roles: Iterable[str] | None = None,
    ) -> LoginResult:
        """Authenticate with email and password.

        Args:
            email: Login email
            password: Plain password
            ip: Client IP
            user_agent: Client user agent
            remember_me: Carried into the token
            allowed_roles: Restrict login to these profile roles

        Returns:
            Token, profile and identity

        Raises:
            UnauthorizedError: Unknown email or wrong password
            ForbiddenError: Identity disabled or role not allowed
            InternalError: Identity has no profile
        """
        email = (email or "").strip().lower()

        with db.session() as session:
            identity = session.query(AuthUser).filter(AuthUser.email == email).first()

        if not identity or not verify_password(password, identity.password):
            self.logger.warning("login_failed", email=email)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not identity.is_active:
            self.logger.warning("login_inactive_identity", identity_id=identity.id)
            raise ForbiddenError("account disabled")

        with db.session() as session:
            if identity.profile_id is not None:
                profile = session.get(Profile, identity.profile_id)
            else:
                profile = session.query(Profile).filter(Profile.email == email).first()
        if not profile:
            self.logger.error("login_profile_missing", identity_id=identity.id)
            raise InternalError("Profile not found for this account")

        if allowed_roles is not None and _role_value(profile.role) not in set(allowed_roles):
            self.logger.warning("login_role_denied", profile_id=profile.id, role=_role_value(profile.role))
            raise ForbiddenError("access denied for this role")

        token = self.issue_token(identity, profile, remember_me=remember_me)

        self._record_session(profile.id, token, ip, user_agent)
        self._touch_login(identity.id, profile.id)

        self.logger.info("user_logged_in", profile_id=profile.id)
        return LoginResult(token=token, profile=profile, identity=identity)

    def _touch_login(self, identity_id: int, profile_id: int) -> None:
        """Update last_login/last_activity. Failures are logged, never raised."""
        now = datetime.utcnow()
        try:
            with db.session() as session:
                session.query(AuthUser).filter(AuthUser.id == identity_id).update(
                    {AuthUser.last_login: now}, synchronize_session=False
                )
                session.query(Profile).filter(Profile.id == profile_id).update(
                    {Profile.last_login: now, Profile.last_activity: now}, synchronize_session=False
                )
        except Exception as e:
            self.logger.warning("login_timestamp_update_failed", profile_id=profile_id, error=str(e))

    # ==================== LOGOUT ====================

    def logout(self, ctx: AuthContext, token: str | None) -> bool:
        """Close the caller's session and stamp last_logout.

        Returns:
            True if an open session was closed
        """
        closed = False
        if token:
            closed = self.sessions.mark_logout(ctx.profile_id, token) is not None

        with db.session() as session:
            session.query(Profile).filter(Profile.id == ctx.profile_id).update(
                {Profile.last_logout: datetime.utcnow()}, synchronize_session=False
            )

        self.logger.info("user_logged_out", profile_id=ctx.profile_id, session_closed=closed)
        return closed


# Singleton instance
auth_service = LocalAuthService()
