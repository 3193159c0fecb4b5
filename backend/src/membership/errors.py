"""Domain error taxonomy.

Services raise these; the API layer turns them into JSON responses with
the matching status code. Messages are safe to show to clients.
"""

from typing import Any


class ConfigurationError(RuntimeError):
    """Fatal startup condition (missing or malformed secret)."""


class MembershipError(Exception):
    """Base class for errors surfaced to API clients."""

    kind = "Internal"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        issues: list[dict[str, str]] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.issues = issues or []

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        body: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.field:
            body["field"] = self.field
        if self.issues:
            body["errors"] = self.issues
        return body


class UnauthorizedError(MembershipError):
    """Absent, invalid or expired credentials or token."""

    kind = "Unauthorized"
    status_code = 401


class ForbiddenError(MembershipError):
    """Authenticated but not allowed."""

    kind = "Forbidden"
    status_code = 403


class NotFoundError(MembershipError):
    kind = "NotFound"
    status_code = 404


class ConflictError(MembershipError):
    """Uniqueness violation; `field` names the offending column."""

    kind = "Conflict"
    status_code = 409


class BadRequestError(MembershipError):
    """Domain rule violation."""

    kind = "BadRequest"
    status_code = 400


class CryptoError(MembershipError):
    """Decryption or authentication failure.

    The message passed in is for logs only; clients get a generic one.
    """

    kind = "CryptoError"
    status_code = 500
    public_message = "Encrypted data could not be processed"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.public_message}


class InternalError(MembershipError):
    kind = "Internal"
    status_code = 500
