"""Auth domain types."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr


class UserRole(str, Enum):
    """User roles."""

    USER = "user"
    ADMIN = "admin"


class CodePurpose(str, Enum):
    """Why a one-time code was issued. Codes never validate across purposes."""

    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


class User(BaseModel):
    """User domain model."""

    id: int
    email: EmailStr  # always lower-cased
    username: str | None = None
    name: str | None = None
    password_hash: str | None = None  # None for accounts without password login
    role: UserRole = UserRole.USER
    is_verified: bool = False
    last_signed_in_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    def to_public(self) -> "PublicUser":
        """Project to the fields that may leave the service."""
        return PublicUser(
            id=self.id,
            email=self.email,
            username=self.username,
            name=self.name,
            role=self.role,
            is_verified=self.is_verified,
            last_signed_in_at=self.last_signed_in_at,
            created_at=self.created_at,
        )


class PublicUser(BaseModel):
    """User projection returned to callers (no password hash)."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: EmailStr
    username: str | None = None
    name: str | None = None
    role: UserRole
    is_verified: bool
    last_signed_in_at: datetime | None = None
    created_at: datetime


class VerificationCode(BaseModel):
    """Purpose-scoped one-time code.

    There is at most one row per (user_id, purpose). For the reset flow the
    same row also carries the hash of the companion reset token, so a single
    record is the authority for the whole reset cycle.
    """

    id: int
    user_id: int
    purpose: CodePurpose
    code: str
    token_hash: str | None = None
    expires_at: datetime
    attempt_count: int = 0
    max_attempts: int = 5
    ip_address: str | None = None
    user_agent: str | None = None
    verified_at: datetime | None = None
    used_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        """Unused, unexpired and not locked out by failed attempts."""
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return (
            self.used_at is None
            and expires_at > now
            and self.attempt_count < self.max_attempts
        )


class Session(BaseModel):
    """Revocable record bound to an issued session token."""

    id: int
    user_id: int
    token_hash: str  # SHA-256 of the bearer token
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    revoked_at: datetime | None = None
    created_at: datetime


class TokenPayload(BaseModel):
    """JWT token payload claims."""

    sub: str  # user_id
    email: str
    role: str
    exp: int  # expiration timestamp
    iat: int  # issued at timestamp
    jti: str  # unique per token

    @property
    def user_id(self) -> int:
        """Numeric user id carried in ``sub``."""
        return int(self.sub)


class PasswordCheck(BaseModel):
    """Outcome of a password strength check."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: list[str]


class RequestContext(BaseModel):
    """Caller metadata recorded on codes and sessions."""

    model_config = ConfigDict(frozen=True)

    ip_address: str | None = None
    user_agent: str | None = None


class LoginResult(BaseModel):
    """Successful login payload."""

    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: PublicUser


class ResetGrant(BaseModel):
    """Single-use reset token handed out once a reset code is verified."""

    token: str
    expires_at: datetime
    user: PublicUser
