"""Auth service for registration, verification, login and password recovery."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache, wraps
from typing import NoReturn, ParamSpec, TypeVar

import structlog
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from osmora.core.auth.challenge import ChallengeAnswer, ChallengeVerifier
from osmora.core.auth.codes import (
    CODE_LENGTH,
    MAX_CODE_ATTEMPTS,
    RESET_PASSWORD_TTL_MINUTES,
    VERIFY_EMAIL_TTL_HOURS,
    generate_code,
)
from osmora.core.auth.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    UnauthorizedError,
    UnverifiedError,
    ValidationError,
)
from osmora.core.auth.jwt import TokenIssuer
from osmora.core.auth.notifier import AuthNotifier
from osmora.core.auth.password import hash_password, validate_password_strength, verify_password
from osmora.core.auth.repository import CredentialStore
from osmora.core.auth.tokens import (
    generate_reset_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
)
from osmora.core.auth.types import (
    CodePurpose,
    LoginResult,
    PublicUser,
    RequestContext,
    ResetGrant,
    User,
    UserRole,
)

logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")

_EMAIL_ADAPTER = TypeAdapter(EmailStr)

# Column widths of users.username and users.name
MAX_USERNAME_LENGTH = 64
MAX_NAME_LENGTH = 255


@dataclass
class AuthConfig:
    """Configuration for one-time codes.

    Attributes:
        code_length: Digits per one-time code.
        verify_email_ttl_hours: Lifetime of email verification codes.
        reset_password_ttl_minutes: Lifetime of password reset codes.
        max_code_attempts: Wrong guesses allowed before a code is dead.
    """

    code_length: int = CODE_LENGTH
    verify_email_ttl_hours: int = VERIFY_EMAIL_TTL_HOURS
    reset_password_ttl_minutes: int = RESET_PASSWORD_TTL_MINUTES
    max_code_attempts: int = MAX_CODE_ATTEMPTS


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    """Hash used to burn comparable time when no real hash exists."""
    return hash_password("osmora-timing-equalizer")


def _guarded(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Turn unexpected failures into InternalError, logging the detail."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except AuthError:
            raise
        except Exception as e:
            logger.exception("auth_operation_failed", operation=func.__name__)
            raise InternalError() from e

    return wrapper


class AuthService:
    """Coordinates every auth flow. Single source of the business rules."""

    def __init__(
        self,
        repo: CredentialStore,
        notifier: AuthNotifier,
        issuer: TokenIssuer,
        challenge: ChallengeVerifier | None = None,
        config: AuthConfig | None = None,
    ) -> None:
        """Initialize with collaborators.

        Args:
            repo: Credential store for users, sessions and codes.
            notifier: Delivers one-time codes out of band.
            issuer: Signs and verifies session tokens.
            challenge: Optional anti-automation verifier for public flows.
            config: One-time code settings.
        """
        self._repo = repo
        self._notifier = notifier
        self._issuer = issuer
        self._challenge = challenge
        self._config = config or AuthConfig()

    # Registration and verification

    @_guarded
    async def register(
        self,
        email: str,
        password: str,
        username: str | None = None,
        name: str | None = None,
        challenge: ChallengeAnswer | None = None,
        context: RequestContext | None = None,
    ) -> PublicUser:
        """Register a new, unverified user and send a verification code.

        Args:
            email: User's email address.
            password: Plain text password.
            username: Optional unique username.
            name: Optional display name.
            challenge: Answer to the anti-automation challenge, if enabled.
            context: Caller metadata stored with the code.

        Returns:
            Public projection of the created user.

        Raises:
            ValidationError: Bad email, weak password, over-long username or
                name, or failed challenge.
            ConflictError: Email or username already taken.
        """
        await self._check_challenge(challenge)

        email = self._validated_email(email)

        check = validate_password_strength(password)
        if not check.is_valid:
            raise ValidationError("Password does not meet requirements", details=check.errors)

        username = username.strip() if username else None
        if username and "@" in username:
            raise ValidationError("Username cannot contain '@'")
        if username and len(username) > MAX_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters")
        if name and len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters")

        if await self._repo.get_user_by_email(email):
            raise ConflictError("Email already registered")
        if username and await self._repo.get_user_by_username(username):
            raise ConflictError("Username already taken")

        user = await self._repo.create_user(
            email=email,
            password_hash=hash_password(password),
            username=username or None,
            name=name,
        )
        logger.info("user_registered", user_id=user.id)

        await self._send_verification_code(user, context)
        return user.to_public()

    @_guarded
    async def verify_otp(self, email: str, code: str, purpose: CodePurpose | str) -> PublicUser:
        """Verify a one-time code.

        For ``verify_email`` the code is consumed and the user becomes
        verified. For ``reset_password`` this is verify_reset_code without
        the reset token in the response.

        Args:
            email: User's email address.
            code: The one-time code.
            purpose: What the code was issued for.

        Returns:
            Public projection of the user.

        Raises:
            InvalidOrExpiredCodeError: For any reason the code does not validate.
        """
        code_purpose = self._parse_purpose(purpose)

        user = await self._repo.get_user_by_email(self._normalize_email(email))
        if not user:
            logger.info("otp_verify_unknown_email", purpose=code_purpose.value)
            raise InvalidOrExpiredCodeError()

        if code_purpose is CodePurpose.RESET_PASSWORD:
            grant = await self._verify_reset_code(user, code)
            return grant.user

        record = await self._repo.consume_active_code(user.id, code_purpose, code.strip())
        if record is None:
            await self._reject_code(user, code_purpose)

        if not user.is_verified:
            await self._repo.update_user_verified(user.id, True)
            user = user.model_copy(update={"is_verified": True})
            welcome = self._notifier.send_welcome(user.email, user.name or user.email)
            await self._notify("welcome_email", user, welcome)

        logger.info("email_verified", user_id=user.id)
        return user.to_public()

    @_guarded
    async def verify_reset_code(self, email: str, code: str) -> ResetGrant:
        """Verify a password reset code and hand out a single-use reset token.

        The code stays unconsumed, so either the code or the token can finish
        the reset. Only the token's SHA-256 is stored, bound to the code, and
        it expires with the code.

        Args:
            email: User's email address.
            code: The reset code.

        Returns:
            ResetGrant with the plaintext token, its expiry and the user.

        Raises:
            InvalidOrExpiredCodeError: For any reason the code does not validate.
        """
        user = await self._repo.get_user_by_email(self._normalize_email(email))
        if not user:
            logger.info("otp_verify_unknown_email", purpose=CodePurpose.RESET_PASSWORD.value)
            raise InvalidOrExpiredCodeError()
        return await self._verify_reset_code(user, code)

    @_guarded
    async def resend_otp_code(
        self,
        email: str,
        purpose: CodePurpose | str,
        challenge: ChallengeAnswer | None = None,
        context: RequestContext | None = None,
    ) -> None:
        """Issue a fresh code, superseding the previous one.

        Unknown emails succeed silently for both purposes.

        Args:
            email: User's email address.
            purpose: Which code to reissue.
            challenge: Answer to the anti-automation challenge, if enabled.
            context: Caller metadata stored with the code.

        Raises:
            ConflictError: A verification code was requested for a verified user.
        """
        code_purpose = self._parse_purpose(purpose)
        await self._check_challenge(challenge)

        if code_purpose is CodePurpose.RESET_PASSWORD:
            await self._send_reset_code(email, context)
            return

        user = await self._repo.get_user_by_email(self._normalize_email(email))
        if not user:
            logger.info("verification_resend_unknown_email")
            return
        if user.is_verified:
            raise ConflictError("Email is already verified")

        await self._send_verification_code(user, context)

    # Sessions

    @_guarded
    async def login(
        self,
        identifier: str,
        password: str,
        context: RequestContext | None = None,
    ) -> LoginResult:
        """Authenticate with email-or-username and password.

        Args:
            identifier: Email address or username.
            password: Plain text password.
            context: Caller metadata stored with the session.

        Returns:
            LoginResult with the session token and user projection.

        Raises:
            InvalidCredentialsError: Unknown identifier or wrong password.
            UnverifiedError: Credentials are right but the email is unverified.
        """
        user = await self._repo.get_user_by_email_or_username(identifier.strip())

        if not user or not user.password_hash:
            # Same bcrypt cost as a real check so timing doesn't reveal the account
            verify_password(password, _dummy_password_hash())
            logger.info("login_failed", reason="unknown_identifier_or_no_password")
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            logger.info("login_failed", reason="wrong_password", user_id=user.id)
            raise InvalidCredentialsError()

        if not user.is_verified:
            logger.info("login_blocked_unverified", user_id=user.id)
            raise UnverifiedError()

        await self._repo.update_user_last_signed_in(user.id)

        issued = self._issuer.issue(user_id=user.id, email=user.email, role=user.role.value)
        ctx = context or RequestContext()
        await self._repo.create_session(
            user_id=user.id,
            token_hash=hash_token(issued.token),
            expires_at=issued.expires_at,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )
        logger.info("login_succeeded", user_id=user.id)

        user = user.model_copy(update={"last_signed_in_at": datetime.now(UTC)})
        return LoginResult(token=issued.token, expires_at=issued.expires_at, user=user.to_public())

    @_guarded
    async def logout(self, token: str | None) -> None:
        """Revoke the session bound to a token. Always succeeds.

        Args:
            token: The session token, if the caller has one.
        """
        if not token:
            return
        revoked = await self._repo.revoke_session(hash_token(token))
        logger.info("logout", session_revoked=revoked)

    @_guarded
    async def authenticate(
        self,
        token: str | None,
        required_role: UserRole | str | None = None,
    ) -> PublicUser:
        """Resolve a session token to its user.

        The token must verify, and its session must exist, be unrevoked
        and unexpired.

        Args:
            token: The session token.
            required_role: If set, the user must have exactly this role.

        Returns:
            Public projection of the authenticated user.

        Raises:
            UnauthorizedError: Token missing, invalid, expired or revoked.
            ValidationError: required_role is not a known role.
            ForbiddenError: User lacks the required role.
        """
        role = self._parse_role(required_role) if required_role is not None else None

        payload = self._issuer.verify(token) if token else None
        if payload is None or not token:
            raise UnauthorizedError()

        session = await self._repo.get_session(hash_token(token))
        if (
            session is None
            or session.revoked_at is not None
            or is_token_expired(session.expires_at)
            or session.user_id != payload.user_id
        ):
            logger.info("session_rejected", user_id=payload.user_id)
            raise UnauthorizedError()

        user = await self._repo.get_user_by_id(payload.user_id)
        if not user:
            raise UnauthorizedError()

        if role is not None and user.role != role:
            logger.warning("role_check_failed", user_id=user.id, required_role=role.value)
            raise ForbiddenError()

        return user.to_public()

    # Password recovery

    @_guarded
    async def send_forgot_password_code(
        self,
        email: str,
        challenge: ChallengeAnswer | None = None,
        context: RequestContext | None = None,
    ) -> None:
        """Start a password reset.

        For security, this always succeeds (doesn't reveal if email exists).

        Args:
            email: User's email address.
            challenge: Answer to the anti-automation challenge, if enabled.
            context: Caller metadata stored with the code.
        """
        await self._check_challenge(challenge)
        await self._send_reset_code(email, context)

    @_guarded
    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        """Reset password using a valid reset code.

        Args:
            email: User's email address.
            code: The reset code.
            new_password: The new password to set.

        Raises:
            ValidationError: New password is too weak.
            InvalidOrExpiredCodeError: Code is not an active reset code.
        """
        check = validate_password_strength(new_password)
        if not check.is_valid:
            raise ValidationError("Password does not meet requirements", details=check.errors)

        user = await self._repo.get_user_by_email(self._normalize_email(email))
        if not user:
            logger.warning("password_reset_unknown_email")
            raise InvalidOrExpiredCodeError()

        new_hash = hash_password(new_password)

        record = await self._repo.consume_active_code(
            user.id, CodePurpose.RESET_PASSWORD, code.strip()
        )
        if record is None:
            await self._reject_code(user, CodePurpose.RESET_PASSWORD)

        await self._complete_reset(user, new_hash)

    @_guarded
    async def reset_password_with_token(
        self,
        email: str,
        reset_token: str,
        new_password: str,
    ) -> None:
        """Reset password using the token returned by verify_reset_code.

        The token is single use and dies with its reset code, so it also
        stops working once the code expires or is superseded.

        Args:
            email: User's email address.
            reset_token: Plaintext reset token.
            new_password: The new password to set.

        Raises:
            ValidationError: New password is too weak.
            InvalidOrExpiredCodeError: Token is unknown, used or expired.
        """
        check = validate_password_strength(new_password)
        if not check.is_valid:
            raise ValidationError("Password does not meet requirements", details=check.errors)

        user = await self._repo.get_user_by_email(self._normalize_email(email))
        if not user or not reset_token:
            logger.warning("password_reset_token_rejected", reason="unknown_email_or_empty_token")
            raise InvalidOrExpiredCodeError()

        new_hash = hash_password(new_password)

        record = await self._repo.consume_reset_token(user.id, hash_token(reset_token.strip()))
        if record is None:
            logger.warning("password_reset_token_rejected", user_id=user.id)
            raise InvalidOrExpiredCodeError()

        await self._complete_reset(user, new_hash)

    @_guarded
    async def change_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change password for an authenticated user.

        Args:
            user_id: ID from a verified session token.
            current_password: The password being replaced.
            new_password: The new password to set.

        Raises:
            UnauthorizedError: Current password is wrong.
            ValidationError: New password is too weak.
        """
        user = await self._repo.get_user_by_id(user_id)
        if (
            not user
            or not user.password_hash
            or not verify_password(current_password, user.password_hash)
        ):
            logger.info("password_change_rejected", user_id=user_id)
            raise UnauthorizedError("Current password is incorrect")

        check = validate_password_strength(new_password)
        if not check.is_valid:
            raise ValidationError("New password does not meet requirements", details=check.errors)

        await self._repo.update_user_password(user.id, hash_password(new_password))
        logger.info("password_changed", user_id=user.id)

    # Helpers

    async def _send_verification_code(self, user: User, context: RequestContext | None) -> None:
        ttl_hours = self._config.verify_email_ttl_hours
        code = generate_code(self._config.code_length)
        ctx = context or RequestContext()

        await self._repo.issue_code(
            user_id=user.id,
            purpose=CodePurpose.VERIFY_EMAIL,
            code=code,
            expires_at=get_token_expiry(hours=ttl_hours),
            max_attempts=self._config.max_code_attempts,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )

        # The account stays on delivery failure; the user can ask for a resend
        delivery = self._notifier.send_verification_code(user.email, code, ttl_hours)
        await self._notify("verification_code", user, delivery)

    async def _send_reset_code(self, email: str, context: RequestContext | None) -> None:
        user = await self._repo.get_user_by_email(self._normalize_email(email))
        if not user:
            # Silently succeed - don't reveal if email exists
            logger.info("password_reset_requested_unknown_email")
            return

        ttl_minutes = self._config.reset_password_ttl_minutes
        code = generate_code(self._config.code_length)
        ctx = context or RequestContext()

        # Replaces any earlier reset code (and its reset token) for this user
        await self._repo.issue_code(
            user_id=user.id,
            purpose=CodePurpose.RESET_PASSWORD,
            code=code,
            expires_at=get_token_expiry(minutes=ttl_minutes),
            max_attempts=self._config.max_code_attempts,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )

        # Don't raise - we don't want to reveal email delivery status
        delivery = self._notifier.send_reset_code(user.email, code, ttl_minutes)
        await self._notify("password_reset_code", user, delivery)

    async def _notify(self, event: str, user: User, delivery: Awaitable[bool]) -> None:
        """Await a notifier call; delivery problems are logged, never raised."""
        try:
            sent = await delivery
        except Exception:
            logger.exception(f"{event}_delivery_failed", user_id=user.id)
            return
        if sent:
            logger.info(f"{event}_sent", user_id=user.id)
        else:
            logger.error(f"{event}_delivery_failed", user_id=user.id)

    async def _verify_reset_code(self, user: User, code: str) -> ResetGrant:
        token = generate_reset_token()
        record = await self._repo.mark_code_verified(
            user.id, CodePurpose.RESET_PASSWORD, code.strip(), token_hash=hash_token(token)
        )
        if record is None:
            await self._reject_code(user, CodePurpose.RESET_PASSWORD)
        logger.info("reset_code_verified", user_id=user.id)
        return ResetGrant(token=token, expires_at=record.expires_at, user=user.to_public())

    async def _complete_reset(self, user: User, new_hash: str) -> None:
        await self._repo.update_user_password(user.id, new_hash)

        # No stale parallel reset state survives a completed reset
        await self._repo.clear_codes_for_purpose(user.id, CodePurpose.RESET_PASSWORD)
        revoked = await self._repo.revoke_user_sessions(user.id)

        logger.info("password_reset_successful", user_id=user.id, sessions_revoked=revoked)

    async def _reject_code(self, user: User, purpose: CodePurpose) -> NoReturn:
        attempts = await self._repo.record_failed_attempt(user.id, purpose)
        logger.warning("otp_rejected", user_id=user.id, purpose=purpose.value, attempts=attempts)
        raise InvalidOrExpiredCodeError()

    async def _check_challenge(self, answer: ChallengeAnswer | None) -> None:
        if self._challenge is None:
            return
        if not await self._challenge.verify(answer):
            raise ValidationError("Captcha verification failed")

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    def _validated_email(self, email: str) -> str:
        normalized = self._normalize_email(email)
        try:
            _EMAIL_ADAPTER.validate_python(normalized)
        except PydanticValidationError:
            raise ValidationError("Invalid email format") from None
        return normalized

    @staticmethod
    def _parse_purpose(purpose: CodePurpose | str) -> CodePurpose:
        try:
            return CodePurpose(purpose)
        except ValueError:
            raise ValidationError("Unknown code purpose") from None

    @staticmethod
    def _parse_role(role: UserRole | str) -> UserRole:
        try:
            return UserRole(role)
        except ValueError:
            raise ValidationError("Unknown role") from None
