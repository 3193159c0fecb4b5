"""Tests for the award ledger."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from membership.awards.service import award_service, serialize_award
from membership.errors import BadRequestError, ForbiddenError, NotFoundError
from membership.referral.service import referral_service


@pytest.fixture
def people():
    grantor = referral_service.create_profile({"email": "boss@example.com"}).profile
    alice = referral_service.create_profile({"email": "alice@example.com"}).profile
    bob = referral_service.create_profile({"email": "bob@example.com"}).profile
    return grantor, alice, bob


def test_create_award(people):
    grantor, alice, _ = people
    award = award_service.create(grantor.id, alice.id, 100, title="Welcome", description="First month")

    assert award.id is not None
    assert award.points == 100
    assert award.assigned_to_id == alice.id
    assert award.assigned_by_id == grantor.id
    assert award.redeemed is False
    assert award.paid is False
    assert serialize_award(award)["assigned_to"] == alice.id


def test_zero_points_allowed(people):
    grantor, alice, _ = people

    assert award_service.create(grantor.id, alice.id, 0).points == 0


@pytest.mark.parametrize("points", [-1, 1.5, "10", True, None])
def test_invalid_points(people, points):
    grantor, alice, _ = people

    with pytest.raises(BadRequestError) as exc_info:
        award_service.create(grantor.id, alice.id, points)
    assert exc_info.value.field == "points"


def test_missing_recipient(people):
    grantor, _, _ = people

    with pytest.raises(NotFoundError):
        award_service.create(grantor.id, 999, 10)


def test_redeem_once(people):
    grantor, alice, _ = people
    award = award_service.create(grantor.id, alice.id, 10)

    redeemed = award_service.redeem(alice.id, award.id)
    assert redeemed.redeemed is True
    assert redeemed.redeemed_at is not None

    with pytest.raises(NotFoundError):
        award_service.redeem(alice.id, award.id)


def test_concurrent_redeem_succeeds_once(people):
    grantor, alice, _ = people
    award = award_service.create(grantor.id, alice.id, 25)

    def attempt(_):
        try:
            return award_service.redeem(alice.id, award.id)
        except NotFoundError:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(20)))

    winners = [o for o in outcomes if o is not None]
    assert len(winners) == 1
    stored = award_service.get_award(award.id, alice.id)
    assert stored.redeemed is True
    assert stored.redeemed_at == winners[0].redeemed_at


def test_redeem_someone_elses_award(people):
    grantor, alice, bob = people
    award = award_service.create(grantor.id, alice.id, 10)

    with pytest.raises(NotFoundError):
        award_service.redeem(bob.id, award.id)
    assert award_service.get_award(award.id, alice.id).redeemed is False


def test_redeem_missing_award(people):
    _, alice, _ = people

    with pytest.raises(NotFoundError):
        award_service.redeem(alice.id, 12345)


def test_mark_paid_once(people):
    grantor, alice, _ = people
    award = award_service.create(grantor.id, alice.id, 10)

    paid = award_service.mark_paid(award.id)
    assert paid.paid is True
    assert paid.paid_at is not None
    assert paid.redeemed is False

    with pytest.raises(BadRequestError, match="already paid"):
        award_service.mark_paid(award.id)


def test_mark_paid_missing():
    with pytest.raises(NotFoundError):
        award_service.mark_paid(12345)


def test_get_award_visibility(people):
    grantor, alice, bob = people
    award = award_service.create(grantor.id, alice.id, 10)

    assert award_service.get_award(award.id, alice.id).id == award.id
    assert award_service.get_award(award.id, grantor.id, is_admin=True).id == award.id
    with pytest.raises(ForbiddenError):
        award_service.get_award(award.id, bob.id)
    with pytest.raises(NotFoundError):
        award_service.get_award(999, alice.id, is_admin=True)
