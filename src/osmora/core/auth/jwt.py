"""JWT session token creation and validation."""

import os
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
import structlog
from pydantic import ValidationError as PydanticValidationError

from osmora.core.auth.types import TokenPayload

logger = structlog.get_logger()

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = 24
DEV_SECRET_KEY = "osmora-dev-secret-change-in-production-0123456789"  # pragma: allowlist secret
REQUIRED_CLAIMS = ["sub", "email", "role", "exp", "iat", "jti"]


class TokenError(Exception):
    """Raised when token validation fails."""

    pass


@dataclass(frozen=True)
class JwtConfig:
    """Signing configuration for session tokens."""

    secret_key: str
    algorithm: str = ALGORITHM
    expire_hours: int = ACCESS_TOKEN_EXPIRE_HOURS

    @classmethod
    def from_env(cls, environment: str = "development") -> "JwtConfig":
        """Load signing configuration from environment variables.

        Args:
            environment: Deployment environment name.

        Returns:
            JwtConfig built from JWT_SECRET_KEY / JWT_EXPIRE_HOURS.

        Raises:
            RuntimeError: If JWT_SECRET_KEY is unset in production.
        """
        secret = os.getenv("JWT_SECRET_KEY", "")
        if not secret:
            if environment == "production":
                raise RuntimeError("JWT_SECRET_KEY must be set in production")
            logger.warning(
                "insecure_default_jwt_secret",
                environment=environment,
                hint="set JWT_SECRET_KEY; tokens signed with the dev key are forgeable",
            )
            secret = DEV_SECRET_KEY
        return cls(
            secret_key=secret,
            expire_hours=int(os.getenv("JWT_EXPIRE_HOURS", str(ACCESS_TOKEN_EXPIRE_HOURS))),
        )


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed token together with its claims."""

    token: str
    payload: TokenPayload

    @property
    def expires_at(self) -> datetime:
        """Expiry as an aware datetime."""
        return datetime.fromtimestamp(self.payload.exp, tz=UTC)


class TokenIssuer:
    """Signs and verifies session tokens."""

    def __init__(self, config: JwtConfig) -> None:
        """Initialize with signing configuration.

        Args:
            config: Secret, algorithm and token lifetime.
        """
        self._config = config

    def issue(self, user_id: int, email: str, role: str) -> IssuedToken:
        """Create a signed session token.

        Args:
            user_id: User identifier
            email: User's email address
            role: User's role

        Returns:
            IssuedToken with the encoded JWT and its claims
        """
        now = datetime.now(UTC)
        expire = now + timedelta(hours=self._config.expire_hours)

        payload = TokenPayload(
            sub=str(user_id),
            email=email,
            role=role,
            exp=int(expire.timestamp()),
            iat=int(now.timestamp()),
            jti=uuid.uuid4().hex,
        )
        token = jwt.encode(
            payload.model_dump(),
            self._config.secret_key,
            algorithm=self._config.algorithm,
        )
        return IssuedToken(token=token, payload=payload)

    def decode(self, token: str) -> TokenPayload:
        """Decode and validate a JWT token.

        Args:
            token: Encoded JWT string

        Returns:
            Decoded token payload

        Raises:
            TokenError: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[self._config.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
            return TokenPayload.model_validate(payload)
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired") from None
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}") from None
        except PydanticValidationError:
            raise TokenError("Invalid token: malformed claims") from None

    def verify(self, token: str) -> TokenPayload | None:
        """Verify a token without raising.

        Signature and expiry are checked by PyJWT; expiry is then
        re-checked against the clock.

        Args:
            token: Encoded JWT string

        Returns:
            Claims if the token is valid, otherwise None.
        """
        if not token:
            return None
        try:
            payload = self.decode(token)
        except TokenError as e:
            logger.debug("token_rejected", reason=str(e))
            return None
        if payload.exp <= int(datetime.now(UTC).timestamp()):
            return None
        return payload

    def decode_unverified(self, token: str) -> TokenPayload | None:
        """Read claims WITHOUT checking signature or expiry.

        Diagnostic use only. This is not an authentication check and
        must never be used to authorize anything.

        Args:
            token: Encoded JWT string

        Returns:
            Claims if the token is structurally readable, otherwise None.
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            return TokenPayload.model_validate(payload)
        except (jwt.InvalidTokenError, PydanticValidationError):
            return None

    def get_expiration_time(self, token: str) -> datetime | None:
        """Diagnostic: expiry embedded in a token, unverified."""
        payload = self.decode_unverified(token)
        if payload is None:
            return None
        return datetime.fromtimestamp(payload.exp, tz=UTC)

    def is_expired(self, token: str) -> bool:
        """Diagnostic: True if the token is unreadable or past its expiry."""
        expires_at = self.get_expiration_time(token)
        if expires_at is None:
            return True
        return expires_at <= datetime.now(UTC)
