"""Tests for log redaction and client identification."""

from starlette.requests import Request

from membership.api.rate_limit import client_ip
from membership.logging_config import REDACTED, redact_sensitive
from membership.settings import settings


def _request(headers=None, host="10.0.0.9"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (host, 50000) if host else None,
    }
    return Request(scope)


# ==================== LOG REDACTION ====================


def test_sensitive_keys_are_redacted():
    event = {
        "event": "bank_account_created",
        "iban": "IT60X0542811101000000123456",
        "password": "hunter2",
        "token": "eyJ...",
        "profile_id": 7,
    }

    redacted = redact_sensitive(None, "info", dict(event))

    assert redacted["iban"] == REDACTED
    assert redacted["password"] == REDACTED
    assert redacted["token"] == REDACTED
    assert redacted["profile_id"] == 7
    assert redacted["event"] == "bank_account_created"


def test_empty_sensitive_values_are_left_alone():
    assert redact_sensitive(None, "info", {"token": None})["token"] is None


# ==================== CLIENT IP ====================


def test_socket_peer_by_default(monkeypatch):
    monkeypatch.setattr(settings, "trust_proxy", False)

    assert client_ip(_request({"X-Forwarded-For": "203.0.113.5"})) == "10.0.0.9"


def test_forwarded_for_behind_proxy(monkeypatch):
    monkeypatch.setattr(settings, "trust_proxy", True)

    assert client_ip(_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})) == "203.0.113.5"
    assert client_ip(_request()) == "10.0.0.9"


def test_unknown_client():
    assert client_ip(_request(host=None)) == "unknown"
