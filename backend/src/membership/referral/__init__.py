"""Referral system.

Every profile gets an 8-character code at creation. A profile created with
someone's code is linked to that profile for good, which makes the
profiles a forest that can be walked from any root.
"""

from membership.referral.service import ReferralService, ReferralStatus, referral_service
from membership.referral.tree import ReferralNode, build_tree, count_referrals

__all__ = [
    "ReferralService",
    "ReferralStatus",
    "referral_service",
    "ReferralNode",
    "build_tree",
    "count_referrals",
]
