"""Award ledger."""

from membership.awards.service import AwardService, award_service

__all__ = ["AwardService", "award_service"]
