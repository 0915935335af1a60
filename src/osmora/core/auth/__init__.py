"""Auth domain types and utilities."""

from osmora.core.auth.challenge import (
    ArithmeticChallenge,
    Challenge,
    ChallengeAnswer,
    ChallengeVerifier,
)
from osmora.core.auth.codes import generate_code
from osmora.core.auth.errors import (
    AuthError,
    AuthErrorKind,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    UnauthorizedError,
    UnverifiedError,
    ValidationError,
)
from osmora.core.auth.jwt import IssuedToken, JwtConfig, TokenError, TokenIssuer
from osmora.core.auth.notifier import AuthNotifier
from osmora.core.auth.password import (
    generate_random_password,
    hash_password,
    validate_password_strength,
    verify_password,
)
from osmora.core.auth.repository import CredentialStore
from osmora.core.auth.service import AuthConfig, AuthService
from osmora.core.auth.types import (
    CodePurpose,
    LoginResult,
    PasswordCheck,
    PublicUser,
    RequestContext,
    ResetGrant,
    Session,
    TokenPayload,
    User,
    UserRole,
    VerificationCode,
)

__all__ = [
    "User",
    "PublicUser",
    "UserRole",
    "CodePurpose",
    "VerificationCode",
    "Session",
    "TokenPayload",
    "PasswordCheck",
    "RequestContext",
    "LoginResult",
    "ResetGrant",
    "hash_password",
    "verify_password",
    "validate_password_strength",
    "generate_random_password",
    "generate_code",
    "JwtConfig",
    "TokenIssuer",
    "IssuedToken",
    "TokenError",
    "CredentialStore",
    "AuthNotifier",
    "ChallengeVerifier",
    "ArithmeticChallenge",
    "Challenge",
    "ChallengeAnswer",
    "AuthConfig",
    "AuthService",
    "AuthError",
    "AuthErrorKind",
    "ValidationError",
    "InvalidCredentialsError",
    "UnverifiedError",
    "InvalidOrExpiredCodeError",
    "ConflictError",
    "UnauthorizedError",
    "ForbiddenError",
    "InternalError",
]
