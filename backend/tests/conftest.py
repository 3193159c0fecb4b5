"""Shared test configuration.

Environment is set before any membership module is imported: settings, the
database engine and the token service are all built at import time.
"""

import os
import tempfile
from pathlib import Path

_DB_DIR = tempfile.mkdtemp(prefix="membership-tests-")

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ.setdefault("JWT_ACCESS_SECRET", "test-jwt-secret-with-enough-length-0123456789")
os.environ.setdefault("BANK_SECRET_KEY", "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from membership.api.main import app  # noqa: E402
from membership.auth.local import auth_service  # noqa: E402
from membership.profiles.service import profile_service  # noqa: E402
from membership.storage.db import db  # noqa: E402

TEST_PASSWORD = "Sup3r-secret!"


@pytest.fixture(autouse=True)
def clean_db():
    """Fresh schema for every test."""
    db.drop_tables()
    db.create_tables()
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register():
    """Register a profile through the auth service.

    Returns the RegistrationResult.
    """

    def _register(email: str, referral_code: str | None = None, **fields):
        data = {"email": email, **fields}
        return auth_service.register(data, password=TEST_PASSWORD, referral_code=referral_code, ip="127.0.0.1")

    return _register


@pytest.fixture
def admin(register):
    """A registered admin profile with a token carrying the admin role."""
    result = register("admin@example.com")
    profile_service.assign_role(result.profile.id, "admin")
    login = auth_service.login("admin@example.com", TEST_PASSWORD, ip="127.0.0.1")
    return login


@pytest.fixture
def bearer():
    """Authorization header for a token."""

    def _bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    return _bearer
