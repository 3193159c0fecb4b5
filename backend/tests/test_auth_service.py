"""Tests for registration, login and logout."""

import pytest

from membership.auth.local import auth_service
from membership.auth.middleware import AuthContext
from membership.auth.passwords import hash_password
from membership.auth.sessions import session_store
from membership.auth.tokens import token_service
from membership.errors import ConflictError, ForbiddenError, InternalError, UnauthorizedError
from membership.profiles.service import profile_service
from membership.referral.service import ReferralStatus
from membership.storage.db import db
from membership.storage.models import AuthUser

PASSWORD = "Sup3r-secret!"


def _identity(email):
    with db.session() as session:
        return session.query(AuthUser).filter(AuthUser.email == email).first()


def test_register_issues_token_with_identity_claims(register):
    result = register("Ada@Example.com", first_name="Ada")
    payload = token_service.verify(result.token)

    assert result.profile.email == "ada@example.com"
    assert result.identity.email == "ada@example.com"
    assert result.identity.password.startswith("pbkdf2_sha256$180000$")
    assert payload["sub"] == str(result.identity.id)
    assert payload["profileId"] == str(result.profile.id)
    assert payload["uid"] == result.profile.user_id
    assert payload["role"] == ["user"]
    assert result.referral_status is ReferralStatus.NOT_PROVIDED
    assert len(session_store.list_for_profile(result.profile.id)) == 1


def test_register_with_referral_code(register):
    parent = register("parent@example.com")
    child = register("child@example.com", referral_code=parent.profile.referral_code)

    assert child.referral_status is ReferralStatus.APPLIED
    assert child.profile.referred_by_id == parent.profile.id


def test_register_duplicate_email(register):
    register("dup@example.com")

    with pytest.raises(ConflictError) as exc_info:
        register("dup@example.com")
    assert exc_info.value.field == "email"


def test_identity_conflict_removes_new_profile(register):
    with db.session() as session:
        session.add(AuthUser(username="orphan@example.com", email="orphan@example.com", password="x"))

    with pytest.raises(ConflictError):
        register("orphan@example.com")
    assert profile_service.get_by_email("orphan@example.com") is None


def test_login_success(register):
    registered = register("ada@example.com")
    result = auth_service.login(" ADA@example.com", PASSWORD, ip="10.0.0.1", user_agent="pytest")

    assert token_service.verify(result.token)["profileId"] == str(registered.profile.id)
    sessions = session_store.list_for_profile(registered.profile.id)
    assert len(sessions) == 2
    assert sessions[0].last_authorized_ip == "10.0.0.1"
    assert profile_service.get_profile(registered.profile.id).last_login is not None
    assert _identity("ada@example.com").last_login is not None


def test_remember_me_claim(register):
    register("ada@example.com")
    result = auth_service.login("ada@example.com", PASSWORD, remember_me=True)

    assert token_service.verify(result.token)["rememberMe"] is True


def test_wrong_password_writes_no_session(register):
    registered = register("ada@example.com")

    with pytest.raises(UnauthorizedError, match="invalid credentials"):
        auth_service.login("ada@example.com", "wrong-password")
    assert len(session_store.list_for_profile(registered.profile.id)) == 1


def test_unknown_email_is_indistinguishable():
    with pytest.raises(UnauthorizedError) as exc_info:
        auth_service.login("nobody@example.com", PASSWORD)
    assert exc_info.value.message == "invalid credentials"


def test_inactive_identity(register):
    register("ada@example.com")
    with db.session() as session:
        session.query(AuthUser).filter(AuthUser.email == "ada@example.com").update({AuthUser.is_active: False})

    with pytest.raises(ForbiddenError):
        auth_service.login("ada@example.com", PASSWORD)


def test_identity_without_profile():
    with db.session() as session:
        session.add(AuthUser(username="lost@example.com", email="lost@example.com", password=hash_password(PASSWORD)))

    with pytest.raises(InternalError):
        auth_service.login("lost@example.com", PASSWORD)


def test_dashboard_login_requires_admin(register):
    result = register("ada@example.com")
    admin_roles = ("admin", "superAdmin")

    with pytest.raises(ForbiddenError):
        auth_service.login("ada@example.com", PASSWORD, allowed_roles=admin_roles)

    profile_service.assign_role(result.profile.id, "admin")
    login = auth_service.login("ada@example.com", PASSWORD, allowed_roles=admin_roles)
    assert token_service.verify(login.token)["role"] == ["admin"]


def test_session_write_failure_does_not_fail_login(register, monkeypatch):
    register("ada@example.com")

    def broken(*args, **kwargs):
        raise RuntimeError("audit store down")

    monkeypatch.setattr(session_store, "record", broken)

    assert auth_service.login("ada@example.com", PASSWORD).token


def test_logout_closes_session(register):
    result = register("ada@example.com")
    ctx = AuthContext(profile_id=result.profile.id, email="ada@example.com", sub=str(result.identity.id))

    assert auth_service.logout(ctx, result.token) is True
    assert session_store.list_for_profile(result.profile.id)[0].logout_at is not None
    assert profile_service.get_profile(result.profile.id).last_logout is not None
    assert auth_service.logout(ctx, result.token) is False


def test_login_after_email_change(register):
    registered = register("old@example.com")
    profile_service.update_profile(
        registered.profile.id, {"email": "New@Example.com"}, requester_id=registered.profile.id
    )

    result = auth_service.login("new@example.com", PASSWORD)

    assert result.profile.id == registered.profile.id
    assert result.identity.email == "new@example.com"
    assert result.identity.username == "new@example.com"
    with pytest.raises(UnauthorizedError, match="invalid credentials"):
        auth_service.login("old@example.com", PASSWORD)


def test_email_change_to_an_identity_email_is_conflict(register):
    first = register("first@example.com")
    register("second@example.com")

    with pytest.raises(ConflictError) as exc_info:
        profile_service.update_profile(first.profile.id, {"email": "second@example.com"}, requester_id=first.profile.id)
    assert exc_info.value.field == "email"
    assert auth_service.login("first@example.com", PASSWORD).profile.id == first.profile.id
