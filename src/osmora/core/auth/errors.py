"""Typed failures raised by the auth service.

The error *kind* is what adapters branch on. Messages are deliberately
generic where distinguishing causes would help an attacker enumerate
accounts or guess codes:

- unknown identifier and wrong password are both ``invalid_credentials``;
- absent, wrong, expired, exhausted and already-used codes are all
  ``invalid_or_expired_code``.

``unverified`` is the one intentional exception: it is only reachable
after the correct password has been supplied.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from osmora.core.exceptions import OsmoraError


class AuthErrorKind(str, Enum):
    """Stable identifiers for auth failures."""

    VALIDATION = "validation"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNVERIFIED = "unverified"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"


class AuthError(OsmoraError):
    """Base class for auth failures surfaced to callers.

    Attributes:
        kind: Machine-readable failure kind.
        message: User-facing message.
        details: Optional list of extra messages (e.g. password rule violations).
    """

    kind: AuthErrorKind = AuthErrorKind.INTERNAL
    default_message: str = "Authentication failed"

    def __init__(self, message: str | None = None, details: list[str] | None = None) -> None:
        """Initialize the error.

        Args:
            message: User-facing message. Defaults to the class message.
            details: Optional extra messages for the caller.
        """
        self.message = message or self.default_message
        self.details = list(details or [])
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for transport adapters."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AuthError):
    """Input must be corrected by the user (bad email, weak password, captcha)."""

    kind = AuthErrorKind.VALIDATION
    default_message = "Invalid input"


class InvalidCredentialsError(AuthError):
    """Unknown identifier or wrong password. Intentionally indistinguishable."""

    kind = AuthErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid email or password"


class UnverifiedError(AuthError):
    """Correct credentials, but the email address is not verified yet."""

    kind = AuthErrorKind.UNVERIFIED
    default_message = "Email not verified"


class InvalidOrExpiredCodeError(AuthError):
    """A one-time code did not validate, for whatever reason."""

    kind = AuthErrorKind.INVALID_OR_EXPIRED_CODE
    default_message = "Invalid or expired code"


class ConflictError(AuthError):
    """The requested state change conflicts with existing data."""

    kind = AuthErrorKind.CONFLICT
    default_message = "Conflict"


class UnauthorizedError(AuthError):
    """Missing, invalid, expired or revoked token, or wrong current password."""

    kind = AuthErrorKind.UNAUTHORIZED
    default_message = "Invalid or expired token"


class ForbiddenError(AuthError):
    """Authenticated, but the user's role does not allow the action."""

    kind = AuthErrorKind.FORBIDDEN
    default_message = "Insufficient permissions"


class InternalError(AuthError):
    """Store, hashing or signing failure. Details are logged, never returned."""

    kind = AuthErrorKind.INTERNAL
    default_message = "Something went wrong. Please try again."
