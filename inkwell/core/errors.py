"""
Typed failures raised by the core.

Every failure carries an ErrorKind. The transport layer renders kinds,
not class names, so callers should branch on ``error.kind``.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    INVALID_PAYLOAD = "invalid_payload"
    NOT_FOUND = "not_found"
    NO_RECORDS_UPDATED = "no_records_updated"
    CONFLICT = "conflict"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_TOKEN = "invalid_token"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    UNAVAILABLE = "unavailable"


class InkwellError(Exception):
    """Base exception for all core failures."""

    kind: ErrorKind = ErrorKind.UNAVAILABLE
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidPayloadError(InkwellError):
    """A required field is missing or empty, or a field is not recognized."""

    kind = ErrorKind.INVALID_PAYLOAD
    default_message = "Invalid payload provided"

    def __init__(self, message: str | None = None, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class NotFoundError(InkwellError):
    """No row matches the id, or the row is soft-deleted under paranoid mode."""

    kind = ErrorKind.NOT_FOUND
    default_message = "No record found"


class NoRecordsUpdatedError(InkwellError):
    """An update affected zero rows."""

    kind = ErrorKind.NO_RECORDS_UPDATED
    default_message = "No records updated"


class ConflictError(InkwellError):
    """A unique constraint was violated."""

    kind = ErrorKind.CONFLICT
    default_message = "Value already in use"

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        constraint: str | None = None,
    ):
        if message is None and field:
            message = f"{field} provided is in use"
        super().__init__(message)
        self.field = field
        self.constraint = constraint


class InvalidCredentialsError(InkwellError):
    """
    Login failed.

    Never says whether the account or the password was wrong.
    """

    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class InvalidTokenError(InkwellError):
    """Token is malformed, expired, revoked, or its subject is inactive."""

    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid token"


class TokenSigningError(InkwellError):
    """Token could not be signed (bad key or algorithm configuration)."""

    kind = ErrorKind.UNAVAILABLE
    default_message = "Token could not be issued"


class UnauthorizedError(InkwellError):
    """The operation needs an authenticated caller."""

    kind = ErrorKind.UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(InkwellError):
    """The caller is authenticated but lacks the required role."""

    kind = ErrorKind.FORBIDDEN
    default_message = "Permission denied"


class DatabaseUnavailableError(InkwellError):
    """The database could not be reached."""

    kind = ErrorKind.UNAVAILABLE
    default_message = "Database unavailable"
