"""Referral engine: code assignment, profile linkage and tree queries."""

import random
import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import func, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from membership.errors import ConflictError, InternalError, NotFoundError
from membership.logging_config import get_logger
from membership.referral.tree import ReferralNode, build_tree, count_referrals
from membership.settings import settings
from membership.storage.db import db, unique_violation_field
from membership.storage.models import Profile, ProfileRole

logger = get_logger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8
MAX_CREATE_ATTEMPTS = 6
MAX_USER_ID_ATTEMPTS = 50
USER_ID_RETRY_JITTER = 0.005  # seconds, scaled by attempt
MAX_TREE_DEPTH = 10

# Profile fields accepted at creation
PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "company_name",
    "vat_number",
    "region",
)


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """Random code from A-Z0-9, each character drawn uniformly.

    Format: K7Q2M9XA (8 chars by default)
    """
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


def normalize_referral_code(code: str | None) -> str | None:
    if not code:
        return None
    code = code.strip().upper()
    return code or None


class ReferralStatus(str, Enum):
    """Outcome of a referral code supplied at registration."""
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    NOT_PROVIDED = "not_provided"


@dataclass
class ProfileCreation:
    """Result of creating a profile through the referral engine."""
    profile: Profile
    referral_status: ReferralStatus
    code_used: str | None = None
    referrer_id: int | None = None


@dataclass
class ReferralTree:
    """A profile with its whole (depth-capped) referral tree."""
    profile: Profile
    children: list[ReferralNode] = field(default_factory=list)
    total_referrals: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.profile.id,
            "email": self.profile.email,
            "first_name": self.profile.first_name,
            "last_name": self.profile.last_name,
            "referral_code": self.profile.referral_code,
            "referrals_count": self.profile.referrals_count,
            "total_referrals": self.total_referrals,
            "children": [child.to_dict() for child in self.children],
        }


class ReferralService:
    """Service for referral codes and the referral forest."""

    def __init__(self):
        """Initialize referral service."""
        self.logger = get_logger(__name__)

    def find_by_referral_code(self, code: str | None) -> Profile | None:
        """Exact lookup of a normalized referral code.

        Args:
            code: Code as entered

        Returns:
            Owning profile or None
        """
        code = normalize_referral_code(code)
        if not code:
            return None

        with db.session() as session:
            return session.query(Profile).filter(Profile.referral_code == code).first()

    def next_user_id(self) -> int:
        """Current maximum external sequence id plus one."""
        with db.session() as session:
            current = session.scalar(select(func.max(Profile.user_id)))
            return (current or 0) + 1

    def create_profile(self, data: dict[str, Any], referral_code: str | None = None) -> ProfileCreation:
        """Create a profile with a fresh unique referral code.

        Args:
            data: Profile fields; `email` required, `user_id` optional
            referral_code: Code of the inviting profile, if any

        Returns:
            Created profile and the outcome of the supplied code

        Raises:
            ConflictError: Email or client-supplied user_id already taken, or
                no free derived user_id within its attempt budget
            InternalError: No unique referral code within the attempt budget
        """
        email = str(data["email"]).strip().lower()
        client_user_id = data.get("user_id")

        code_used = normalize_referral_code(referral_code)
        referrer_id = None
        if code_used is None:
            status = ReferralStatus.NOT_PROVIDED
        else:
            referrer = self.find_by_referral_code(code_used)
            if referrer:
                referrer_id = referrer.id
                status = ReferralStatus.APPLIED
            else:
                status = ReferralStatus.NOT_FOUND
                self.logger.info("referral_code_not_found", code=code_used)

        fields = {name: data[name] for name in PROFILE_FIELDS if data.get(name) is not None}

        code_attempts = 0
        id_attempts = 0
        while True:
            user_id = client_user_id if client_user_id is not None else self.next_user_id()
            code = generate_referral_code()
            try:
                with db.session() as session:
                    profile = Profile(
                        user_id=user_id,
                        email=email,
                        role=ProfileRole.USER,
                        referral_code=code,
                        referred_by_id=referrer_id,
                        **fields,
                    )
                    session.add(profile)
                    session.flush()

                    if referrer_id is not None:
                        session.query(Profile).filter(Profile.id == referrer_id).update(
                            {Profile.referrals_count: Profile.referrals_count + 1},
                            synchronize_session=False,
                        )

                    session.commit()
                    session.refresh(profile)
            except IntegrityError as e:
                column = unique_violation_field(e, "profiles", ("email", "referral_code", "user_id"))
                if column == "email":
                    raise ConflictError("Email already registered", field="email") from e
                if column == "user_id" and client_user_id is not None:
                    raise ConflictError("user_id already in use", field="user_id") from e
                if column == "referral_code":
                    code_attempts += 1
                    self.logger.info("profile_insert_collision", column=column, attempt=code_attempts)
                    if code_attempts >= MAX_CREATE_ATTEMPTS:
                        self.logger.error("referral_code_exhausted", email=email, attempts=code_attempts)
                        raise InternalError("Could not allocate a unique referral code") from e
                    continue
                if column == "user_id":
                    id_attempts += 1
                    self.logger.info("profile_insert_collision", column=column, attempt=id_attempts)
                    if id_attempts >= MAX_USER_ID_ATTEMPTS:
                        self.logger.error("user_id_exhausted", email=email, attempts=id_attempts)
                        raise ConflictError("Could not allocate a unique user_id", field="user_id") from e
                    # Concurrent registrations derived the same max + 1
                    time.sleep(random.uniform(0, USER_ID_RETRY_JITTER * id_attempts))
                    continue
                raise

            self.logger.info(
                "profile_created",
                profile_id=profile.id,
                user_id=profile.user_id,
                referred_by=referrer_id,
                attempts=code_attempts + id_attempts + 1,
            )
            return ProfileCreation(
                profile=profile,
                referral_status=status,
                code_used=code_used,
                referrer_id=referrer_id,
            )

    def delete_profile(self, profile_id: int) -> None:
        """Remove a just-created profile and undo its parent's counter.

        Only used to compensate a registration whose identity insert failed.
        """
        with db.session() as session:
            profile = session.get(Profile, profile_id)
            if not profile:
                return
            if profile.referred_by_id is not None:
                session.query(Profile).filter(
                    Profile.id == profile.referred_by_id,
                    Profile.referrals_count > 0,
                ).update(
                    {Profile.referrals_count: Profile.referrals_count - 1},
                    synchronize_session=False,
                )
            session.delete(profile)
            session.commit()

        self.logger.warning("profile_creation_compensated", profile_id=profile_id)

    def fetch_descendants(self, root_id: int, max_depth: int = MAX_TREE_DEPTH) -> list[ReferralNode]:
        """All transitive descendants of a profile in one recursive query.

        Args:
            root_id: Profile whose descendants are fetched
            max_depth: Levels below the root to follow

        Returns:
            Flat node list, shallowest first
        """
        descendants = (
            select(
                Profile.id.label("id"),
                Profile.referred_by_id.label("parent_id"),
                literal(1).label("depth"),
            )
            .where(Profile.referred_by_id == root_id)
            .cte("descendants", recursive=True)
        )
        parent = descendants.alias()
        child = aliased(Profile)
        descendants = descendants.union_all(
            select(child.id, child.referred_by_id, parent.c.depth + 1).where(
                child.referred_by_id == parent.c.id,
                parent.c.depth < max_depth,
            )
        )

        stmt = (
            select(
                Profile.id,
                Profile.referred_by_id,
                Profile.email,
                Profile.first_name,
                Profile.last_name,
                Profile.referral_code,
                descendants.c.depth,
            )
            .join(descendants, Profile.id == descendants.c.id)
            .order_by(descendants.c.depth, Profile.created_at, Profile.id)
        )

        with db.session() as session:
            rows = session.execute(stmt).all()

        return [
            ReferralNode(
                id=row.id,
                referred_by_id=row.referred_by_id,
                email=row.email,
                first_name=row.first_name,
                last_name=row.last_name,
                referral_code=row.referral_code,
                depth=row.depth,
            )
            for row in rows
        ]

    def get_referral_tree(self, profile_id: int, max_depth: int = MAX_TREE_DEPTH) -> ReferralTree:
        """Profile plus its assembled referral tree and total count.

        Raises:
            NotFoundError: Profile does not exist
        """
        with db.session() as session:
            profile = session.get(Profile, profile_id)
        if not profile:
            raise NotFoundError("Profile not found")

        children = build_tree(profile_id, self.fetch_descendants(profile_id, max_depth))
        return ReferralTree(
            profile=profile,
            children=children,
            total_referrals=count_referrals(children),
        )

    def referral_link(self, code: str) -> str:
        """Shareable registration link carrying the code."""
        return f"{settings.referral_link_base}?ref={code}"


# Singleton instance
referral_service = ReferralService()
