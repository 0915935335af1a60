"""Tests for auth error types."""

from osmora.core.auth.errors import (
    AuthError,
    AuthErrorKind,
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    ValidationError,
)
from osmora.core.exceptions import OsmoraError


class TestAuthErrors:
    """Test error kinds and serialization."""

    def test_hierarchy(self) -> None:
        """All auth errors are OsmoraErrors."""
        err = ConflictError("Email already registered")
        assert isinstance(err, AuthError)
        assert isinstance(err, OsmoraError)

    def test_default_messages(self) -> None:
        """Generic messages hide the underlying cause."""
        assert InvalidCredentialsError().message == "Invalid email or password"
        assert InvalidOrExpiredCodeError().message == "Invalid or expired code"
        assert InternalError().message == "Something went wrong. Please try again."

    def test_kinds(self) -> None:
        """Each class carries its kind."""
        assert ValidationError().kind is AuthErrorKind.VALIDATION
        assert InvalidCredentialsError().kind is AuthErrorKind.INVALID_CREDENTIALS
        assert InvalidOrExpiredCodeError().kind is AuthErrorKind.INVALID_OR_EXPIRED_CODE

    def test_to_dict(self) -> None:
        """Serialized form includes kind, message and details."""
        err = ValidationError("Password does not meet requirements", details=["too short"])
        assert err.to_dict() == {
            "kind": "validation",
            "message": "Password does not meet requirements",
            "details": ["too short"],
        }
        assert str(err) == "Password does not meet requirements"
