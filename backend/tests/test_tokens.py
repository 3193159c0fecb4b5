"""Tests for access token issue and verification."""

from datetime import timedelta

import pytest
from jose import jwt

from membership.auth.tokens import (
    AccessClaims,
    TokenExpiredError,
    TokenInvalidError,
    TokenService,
)
from membership.errors import ConfigurationError
from membership.settings import settings

SECRET = "unit-test-signing-secret-0123456789abcdef"


@pytest.fixture
def tokens():
    return TokenService(secret_key=SECRET)


def _claims(**overrides):
    values = dict(sub="11", profile_id="7", email="Ada@Example.com ", uid=3, role=["user"], remember_me=True)
    values.update(overrides)
    return AccessClaims(**values)


def test_issue_and_verify(tokens):
    payload = tokens.verify(tokens.issue(_claims()))

    assert payload["sub"] == "11"
    assert payload["profileId"] == "7"
    assert payload["email"] == "ada@example.com"
    assert payload["uid"] == 3
    assert payload["role"] == ["user"]
    assert payload["rememberMe"] is True
    assert payload["exp"] > payload["iat"]


def test_default_lifetime_is_seven_days(tokens):
    payload = tokens.decode(tokens.issue(_claims()))

    assert payload["exp"] - payload["iat"] == int(timedelta(days=7).total_seconds())


def test_expired_token(tokens):
    token = tokens.issue(_claims(), ttl=timedelta(seconds=-5))

    with pytest.raises(TokenExpiredError) as exc_info:
        tokens.verify(token)
    assert exc_info.value.kind == "expired"


def test_wrong_secret_is_invalid(tokens):
    token = TokenService(secret_key="another-secret-entirely-0123456789").issue(_claims())

    with pytest.raises(TokenInvalidError) as exc_info:
        tokens.verify(token)
    assert exc_info.value.kind == "invalid"


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_token_is_invalid(tokens, token):
    with pytest.raises(TokenInvalidError):
        tokens.decode(token)


def test_missing_profile_id_fails_verify_but_decodes(tokens):
    token = jwt.encode({"sub": "1", "email": "a@example.com"}, SECRET, algorithm="HS256")

    assert tokens.decode(token)["email"] == "a@example.com"
    with pytest.raises(TokenInvalidError):
        tokens.verify(token)


def test_claims_require_profile_id():
    with pytest.raises(ValueError):
        _claims(profile_id="").to_payload()


def test_optional_claims_omitted():
    payload = AccessClaims(sub="1", profile_id="2", email="x@example.com").to_payload()

    assert set(payload) == {"sub", "profileId", "email"}


def test_missing_secret_is_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "jwt_access_secret", None)

    with pytest.raises(ConfigurationError):
        TokenService().issue(_claims())
