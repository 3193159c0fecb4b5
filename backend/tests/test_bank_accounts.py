"""Tests for the bank account pipeline."""

import hashlib

import pytest

from membership.banking.crypto import decrypt_payload
from membership.banking.service import bank_account_service, serialize_account
from membership.errors import BadRequestError, ConflictError, CryptoError, ForbiddenError, NotFoundError
from membership.referral.service import referral_service
from membership.settings import settings
from membership.storage.db import db
from membership.storage.models import BankAccount

IBAN = "IT60X0542811101000000123456"
OTHER_IBAN = "DE89370400440532013000"


@pytest.fixture
def owner():
    return referral_service.create_profile({"email": "owner@example.com"}).profile


def _account(profile, iban=IBAN, **extra):
    data = {"holder_name": "Ada Lovelace", "iban": iban, **extra}
    return bank_account_service.create_account(profile.id, profile.email, data)


def _count_accounts():
    with db.session() as session:
        return session.query(BankAccount).count()


def test_iban_is_stored_encrypted_and_hashed(owner):
    account = _account(owner)

    assert not hasattr(BankAccount, "iban")
    assert account.iban_enc and account.iban_enc.count(":") == 2
    assert IBAN not in account.iban_enc
    assert account.iban_hash == hashlib.sha256(IBAN.encode()).hexdigest()
    assert decrypt_payload(account.iban_enc, settings.bank_secret_key) == IBAN
    assert account.email == owner.email
    assert account.currency == "EUR"


def test_public_serialization_hides_crypto_fields(owner):
    data = serialize_account(_account(owner))

    assert "iban_enc" not in data
    assert "iban_hash" not in data
    assert "iban" not in data


def test_iban_is_normalized_before_encryption(owner):
    account = _account(owner, iban="it60 x054 2811 1010 0000 0123 456")

    assert decrypt_payload(account.iban_enc, settings.bank_secret_key) == IBAN


def test_invalid_iban_stores_nothing(owner):
    with pytest.raises(BadRequestError) as exc_info:
        _account(owner, iban="IT61X0542811101000000123456")

    assert exc_info.value.field == "iban"
    assert _count_accounts() == 0


def test_same_iban_twice_for_one_profile(owner):
    _account(owner)

    with pytest.raises(ConflictError) as exc_info:
        _account(owner, iban="IT60 X054 2811 1010 0000 0123 456")
    assert exc_info.value.field == "iban"


def test_same_iban_for_two_profiles(owner):
    other = referral_service.create_profile({"email": "other@example.com"}).profile
    _account(owner)
    _account(other)

    assert _count_accounts() == 2


def test_email_must_match_profile(owner):
    with pytest.raises(BadRequestError) as exc_info:
        _account(owner, email="someone@else.com")
    assert exc_info.value.field == "email"


def test_bic_country_currency_normalized(owner):
    account = _account(owner, bic="uncritmm", country="it", currency="eur")

    assert (account.bic, account.country, account.currency) == ("UNCRITMM", "IT", "EUR")


@pytest.mark.parametrize("field,value", [("bic", "UNCR"), ("country", "ITA"), ("currency", "E1")])
def test_invalid_codes(owner, field, value):
    with pytest.raises(BadRequestError) as exc_info:
        _account(owner, **{field: value})
    assert exc_info.value.field == field


def test_missing_profile():
    with pytest.raises(NotFoundError):
        bank_account_service.create_account(404, None, {"holder_name": "X", "iban": IBAN})


def test_confirmation_masked_by_default(owner):
    _account(owner)
    view = bank_account_service.confirmation_view(owner.id)

    assert "iban" not in view
    assert view["iban_last4"] == "3456"
    assert view["iban_masked"].startswith("IT60 ****")
    assert "iban_enc" not in view


def test_confirmation_reveal(owner):
    _account(owner)

    assert bank_account_service.confirmation_view(owner.id, reveal=True)["iban"] == IBAN


def test_confirmation_uses_most_recent_account(owner):
    _account(owner)
    latest = _account(owner, iban=OTHER_IBAN)

    assert bank_account_service.get_primary(owner.id).id == latest.id
    assert bank_account_service.confirmation_view(owner.id)["iban_last4"] == "3000"


def test_confirmation_without_account(owner):
    with pytest.raises(NotFoundError):
        bank_account_service.confirmation_view(owner.id)


def test_corrupted_payload_is_crypto_error(owner):
    account = _account(owner)
    with db.session() as session:
        stored = session.get(BankAccount, account.id)
        nonce, ciphertext, tag = stored.iban_enc.split(":")
        stored.iban_enc = ":".join([nonce, ciphertext, ("0" if tag[0] != "0" else "1") + tag[1:]])

    with pytest.raises(CryptoError):
        bank_account_service.confirmation_view(owner.id)


def test_replace_iban_rewrites_both_fields(owner):
    account = _account(owner)
    replaced = bank_account_service.replace_iban(owner.id, account.id, OTHER_IBAN)

    assert replaced.iban_hash == hashlib.sha256(OTHER_IBAN.encode()).hexdigest()
    assert decrypt_payload(replaced.iban_enc, settings.bank_secret_key) == OTHER_IBAN
    assert replaced.iban_enc != account.iban_enc


def test_replace_iban_of_foreign_account(owner):
    other = referral_service.create_profile({"email": "other@example.com"}).profile
    account = _account(other)

    with pytest.raises(NotFoundError):
        bank_account_service.replace_iban(owner.id, account.id, OTHER_IBAN)


def test_find_and_exists_by_iban(owner):
    account = _account(owner)

    assert bank_account_service.find_by_iban("it60x0542811101000000123456").id == account.id
    assert bank_account_service.exists_by_iban(IBAN) is True
    assert bank_account_service.exists_by_iban(OTHER_IBAN) is False
    assert bank_account_service.find_by_iban("not-an-iban") is None
    assert bank_account_service.exists_by_iban("") is False


def test_confirmation_for_another_profile(owner):
    _account(owner)
    stranger = referral_service.create_profile({"email": "stranger@example.com"}).profile

    with pytest.raises(ForbiddenError):
        bank_account_service.confirmation_view(owner.id, requester_id=stranger.id)

    as_admin = bank_account_service.confirmation_view(owner.id, reveal=True, requester_id=stranger.id, is_admin=True)
    assert as_admin["iban"] == IBAN

    own = bank_account_service.confirmation_view(owner.id, requester_id=owner.id)
    assert own["iban_last4"] == "3456"
    assert "iban" not in own
