"""Tests for the operator CLI."""

import re

import pytest
from typer.testing import CliRunner

from membership.auth.passwords import verify_password
from membership.banking.crypto import get_vault
from membership.cli import app
from membership.profiles.service import profile_service
from membership.referral.service import referral_service
from membership.storage.models import ProfileRole

runner = CliRunner()


def test_init():
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert "Database initialized" in result.output


def test_generate_key():
    result = runner.invoke(app, ["generate-key"])

    assert result.exit_code == 0
    assert re.fullmatch(r"[0-9a-f]{64}", result.output.strip())


def test_hash_password():
    result = runner.invoke(app, ["hash-password", "--password", "s3cret"])

    assert result.exit_code == 0
    stored = result.output.strip()
    assert stored.startswith("pbkdf2_sha256$180000$")
    assert verify_password("s3cret", stored)


def test_decrypt_iban():
    payload = get_vault().encrypt("IT60X0542811101000000123456")
    result = runner.invoke(app, ["decrypt-iban", payload])

    assert result.exit_code == 0
    assert result.output.strip() == "IT60X0542811101000000123456"


def test_decrypt_iban_with_wrong_key():
    payload = get_vault().encrypt("IT60X0542811101000000123456")
    result = runner.invoke(app, ["decrypt-iban", payload, "--key", "ab" * 32])

    assert result.exit_code == 1
    assert "Decryption failed" in result.output


@pytest.mark.parametrize("role,expected", [("superAdmin", ProfileRole.SUPER_ADMIN), ("admin", ProfileRole.ADMIN)])
def test_set_role(role, expected):
    profile = referral_service.create_profile({"email": "ops@example.com"}).profile
    result = runner.invoke(app, ["set-role", "ops@example.com", role])

    assert result.exit_code == 0
    assert profile_service.get_profile(profile.id).role is expected


def test_set_role_rejects_unknown_role_and_email():
    referral_service.create_profile({"email": "ops@example.com"})

    assert runner.invoke(app, ["set-role", "ops@example.com", "root"]).exit_code == 1
    assert runner.invoke(app, ["set-role", "ghost@example.com", "admin"]).exit_code == 1


def test_referral_tree():
    root = referral_service.create_profile({"email": "root@example.com"}).profile
    referral_service.create_profile({"email": "kid@example.com"}, referral_code=root.referral_code)

    result = runner.invoke(app, ["referral-tree", str(root.id)])

    assert result.exit_code == 0
    assert "kid@example.com" in result.output
    assert "Total referrals" in result.output


def test_referral_tree_missing_profile():
    assert runner.invoke(app, ["referral-tree", "999"]).exit_code == 1
