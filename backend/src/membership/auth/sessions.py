"""Session audit store. Tokens are self-verifying; these rows are for trace only."""

from datetime import datetime

from sqlalchemy import select

from membership.logging_config import get_logger
from membership.storage.db import db
from membership.storage.models import LoginSession

logger = get_logger(__name__)

MAX_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 512


class SessionStore:
    """Durable record of issued tokens per profile."""

    def record(
        self,
        profile_id: int,
        token: str,
        ip: str | None,
        user_agent: str | None = None,
    ) -> LoginSession:
        """Record an issued token.

        Args:
            profile_id: Owning profile
            token: Issued token
            ip: Client IP
            user_agent: Client user agent

        Returns:
            Session record
        """
        with db.session() as session:
            record = LoginSession(
                profile_id=profile_id,
                token=token,
                last_authorized_ip=(ip or "unknown")[:MAX_IP_LENGTH],
                user_agent=(user_agent or "")[:MAX_USER_AGENT_LENGTH],
            )
            session.add(record)
            session.commit()
            session.refresh(record)

            logger.debug("session_recorded", session_id=record.id, profile_id=profile_id)
            return record

    def mark_logout(self, profile_id: int, token: str) -> LoginSession | None:
        """Set the logout time of a session once.

        Returns:
            Updated session or None if no open session matches
        """
        with db.session() as session:
            record = session.scalars(
                select(LoginSession).where(
                    LoginSession.profile_id == profile_id,
                    LoginSession.token == token,
                    LoginSession.logout_at.is_(None),
                )
            ).first()
            if not record:
                return None

            record.logout_at = datetime.utcnow()
            session.commit()
            session.refresh(record)

            logger.info("session_logged_out", session_id=record.id, profile_id=profile_id)
            return record

    def list_for_profile(self, profile_id: int, limit: int = 20) -> list[LoginSession]:
        """Most recent sessions of a profile."""
        with db.session() as session:
            return list(
                session.scalars(
                    select(LoginSession)
                    .where(LoginSession.profile_id == profile_id)
                    .order_by(LoginSession.issued_at.desc(), LoginSession.id.desc())
                    .limit(limit)
                )
            )


# Singleton instance
session_store = SessionStore()
