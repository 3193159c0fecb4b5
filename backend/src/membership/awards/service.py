"""Award ledger: point grants with redeem and payment lifecycles."""

from datetime import datetime
from typing import Any

from sqlalchemy import update

from membership.errors import BadRequestError, ForbiddenError, NotFoundError
from membership.logging_config import get_logger
from membership.storage.db import db
from membership.storage.models import Award, Profile

logger = get_logger(__name__)


def serialize_award(award: Award) -> dict[str, Any]:
    return {
        "id": award.id,
        "title": award.title,
        "description": award.description,
        "points": award.points,
        "assigned_to": award.assigned_to_id,
        "assigned_by": award.assigned_by_id,
        "redeemed": award.redeemed,
        "redeemed_at": award.redeemed_at.isoformat() if award.redeemed_at else None,
        "paid": award.paid,
        "paid_at": award.paid_at.isoformat() if award.paid_at else None,
        "created_at": award.created_at.isoformat() if award.created_at else None,
    }


class AwardService:
    """Service for granting, redeeming and paying out awards."""

    def __init__(self):
        """Initialize award service."""
        self.logger = get_logger(__name__)

    def create(
        self,
        grantor_id: int,
        recipient_id: int,
        points: int,
        title: str | None = None,
        description: str | None = None,
    ) -> Award:
        """Grant points to a profile.

        Args:
            grantor_id: Profile granting the award
            recipient_id: Profile receiving it
            points: Non-negative integer
            title: Optional title
            description: Optional description

        Returns:
            Created award

        Raises:
            BadRequestError: points is not a non-negative integer
            NotFoundError: Recipient does not exist
        """
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            raise BadRequestError(
                "points must be a non-negative integer",
                field="points",
                issues=[{"field": "points", "message": "must be an integer >= 0"}],
            )

        with db.session() as session:
            if not session.get(Profile, recipient_id):
                raise NotFoundError("Recipient profile not found", field="assigned_to")

            award = Award(
                title=title,
                description=description,
                points=points,
                assigned_to_id=recipient_id,
                assigned_by_id=grantor_id,
            )
            session.add(award)
            session.commit()
            session.refresh(award)

            self.logger.info(
                "award_created",
                award_id=award.id,
                points=points,
                assigned_to=recipient_id,
                assigned_by=grantor_id,
            )
            return award

    def get_award(self, award_id: int, requester_id: int, is_admin: bool = False) -> Award:
        """Read one award.

        Raises:
            NotFoundError: Award does not exist
            ForbiddenError: Plain users may only read their own awards
        """
        with db.session() as session:
            award = session.get(Award, award_id)
        if not award:
            raise NotFoundError("Award not found")
        if not is_admin and award.assigned_to_id != requester_id:
            raise ForbiddenError("Not allowed to view this award")
        return award

    def redeem(self, recipient_id: int, award_id: int) -> Award:
        """Redeem an award exactly once.

        A single conditional update; a missing award, someone else's award
        and an already redeemed one are all reported as not found.

        Raises:
            NotFoundError: No redeemable award matched
        """
        now = datetime.utcnow()
        with db.session() as session:
            result = session.execute(
                update(Award)
                .where(
                    Award.id == award_id,
                    Award.assigned_to_id == recipient_id,
                    Award.redeemed.is_(False),
                )
                .values(redeemed=True, redeemed_at=now, updated_at=now)
            )
            if result.rowcount == 0:
                raise NotFoundError("Award not found, not yours, or already redeemed")
            session.commit()
            award = session.get(Award, award_id)

        self.logger.info("award_redeemed", award_id=award_id, profile_id=recipient_id)
        return award

    def mark_paid(self, award_id: int) -> Award:
        """Mark an award paid exactly once.

        Raises:
            NotFoundError: Award does not exist
            BadRequestError: Award already paid
        """
        now = datetime.utcnow()
        with db.session() as session:
            result = session.execute(
                update(Award)
                .where(Award.id == award_id, Award.paid.is_(False))
                .values(paid=True, paid_at=now, updated_at=now)
            )
            if result.rowcount == 0:
                if session.get(Award, award_id) is None:
                    raise NotFoundError("Award not found")
                raise BadRequestError("Award already paid")
            session.commit()
            award = session.get(Award, award_id)

        self.logger.info("award_marked_paid", award_id=award_id)
        return award


# Singleton instance
award_service = AwardService()
