"""Tests for auth service."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from osmora.core.auth.challenge import ChallengeAnswer
from osmora.core.auth.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    InvalidOrExpiredCodeError,
    UnauthorizedError,
    UnverifiedError,
    ValidationError,
)
from osmora.core.auth.jwt import JwtConfig, TokenIssuer
from osmora.core.auth.password import hash_password
from osmora.core.auth.service import AuthConfig, AuthService
from osmora.core.auth.tokens import hash_token
from osmora.core.auth.types import CodePurpose, Session, User, UserRole, VerificationCode
from tests.fixtures.auth import STRONG_PASSWORD, TEST_SECRET


def _user(**overrides: object) -> User:
    fields: dict[str, object] = {
        "id": 1,
        "email": "test@example.com",
        "name": "Test",
        "password_hash": hash_password(STRONG_PASSWORD),
        "is_verified": True,
        "created_at": datetime.now(UTC),
    }
    fields.update(overrides)
    return User(**fields)  # type: ignore[arg-type]


def _code_record(purpose: CodePurpose = CodePurpose.VERIFY_EMAIL) -> VerificationCode:
    now = datetime.now(UTC)
    return VerificationCode(
        id=1,
        user_id=1,
        purpose=purpose,
        code="123456",
        expires_at=now + timedelta(minutes=10),
        created_at=now,
    )


@pytest.fixture
def mock_repo() -> MagicMock:
    """Create mock repository."""
    repo = MagicMock()
    repo.get_user_by_email = AsyncMock(return_value=None)
    repo.get_user_by_username = AsyncMock(return_value=None)
    repo.issue_code = AsyncMock()
    repo.record_failed_attempt = AsyncMock(return_value=1)
    repo.create_session = AsyncMock()
    repo.update_user_last_signed_in = AsyncMock()
    return repo


@pytest.fixture
def mock_notifier() -> MagicMock:
    """Create mock notifier."""
    notifier = MagicMock()
    notifier.send_verification_code = AsyncMock(return_value=True)
    notifier.send_reset_code = AsyncMock(return_value=True)
    notifier.send_welcome = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def token_issuer() -> TokenIssuer:
    """Issuer with a fixed secret."""
    return TokenIssuer(JwtConfig(secret_key=TEST_SECRET))


@pytest.fixture
def service(
    mock_repo: MagicMock, mock_notifier: MagicMock, token_issuer: TokenIssuer
) -> AuthService:
    """Create service with mock repo."""
    return AuthService(mock_repo, mock_notifier, token_issuer)


class TestAuthServiceRegister:
    """Test registration."""

    @pytest.mark.asyncio
    async def test_register_success(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """Should create an unverified user and send a code."""
        mock_repo.create_user = AsyncMock(return_value=_user(is_verified=False))

        result = await service.register(" Test@Example.com ", STRONG_PASSWORD, name="Test")

        assert result.email == "test@example.com"
        assert result.is_verified is False
        create_kwargs = mock_repo.create_user.await_args.kwargs
        assert create_kwargs["email"] == "test@example.com"
        assert create_kwargs["password_hash"] != STRONG_PASSWORD
        issue_kwargs = mock_repo.issue_code.await_args.kwargs
        assert issue_kwargs["purpose"] is CodePurpose.VERIFY_EMAIL
        assert len(issue_kwargs["code"]) == 6
        mock_notifier.send_verification_code.assert_awaited_once_with(
            "test@example.com", issue_kwargs["code"], 24
        )

    @pytest.mark.asyncio
    async def test_register_weak_password(self, service: AuthService, mock_repo: MagicMock) -> None:
        """Should list the violated rules."""
        mock_repo.create_user = AsyncMock()

        with pytest.raises(ValidationError) as exc_info:
            await service.register("test@example.com", "weak")

        assert exc_info.value.message == "Password does not meet requirements"
        assert "Password must be at least 8 characters long" in exc_info.value.details
        mock_repo.create_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_register_invalid_email(self, service: AuthService) -> None:
        """Should reject malformed email addresses."""
        with pytest.raises(ValidationError, match="Invalid email format"):
            await service.register("not-an-email", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_register_duplicate_email(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Should refuse an existing email."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())

        with pytest.raises(ConflictError, match="Email already registered"):
            await service.register("test@example.com", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_register_duplicate_username(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Should refuse an existing username."""
        mock_repo.get_user_by_username = AsyncMock(return_value=_user(username="taken"))

        with pytest.raises(ConflictError, match="Username already taken"):
            await service.register("new@example.com", STRONG_PASSWORD, username="taken")

    @pytest.mark.asyncio
    async def test_register_username_with_at_sign(self, service: AuthService) -> None:
        """Usernames can't look like emails."""
        with pytest.raises(ValidationError):
            await service.register("new@example.com", STRONG_PASSWORD, username="a@b")

    @pytest.mark.asyncio
    async def test_register_notifier_failure_keeps_account(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """A failed send is logged but registration still succeeds."""
        mock_repo.create_user = AsyncMock(return_value=_user(is_verified=False))
        mock_notifier.send_verification_code = AsyncMock(return_value=False)

        result = await service.register("test@example.com", STRONG_PASSWORD)

        assert result.id == 1

    @pytest.mark.asyncio
    async def test_register_notifier_exception_keeps_account(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """A notifier that raises is logged; the created user is still returned."""
        mock_repo.create_user = AsyncMock(return_value=_user(is_verified=False))
        mock_notifier.send_verification_code = AsyncMock(side_effect=OSError("refused"))

        result = await service.register("test@example.com", STRONG_PASSWORD)

        assert result.id == 1
        mock_repo.issue_code.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_register_username_too_long(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Usernames longer than the column are rejected before any write."""
        mock_repo.create_user = AsyncMock()

        with pytest.raises(ValidationError, match="Username must be at most 64 characters"):
            await service.register("new@example.com", STRONG_PASSWORD, username="u" * 65)

        mock_repo.create_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_register_name_too_long(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Display names longer than the column are rejected before any write."""
        mock_repo.create_user = AsyncMock()

        with pytest.raises(ValidationError, match="Name must be at most 255 characters"):
            await service.register("new@example.com", STRONG_PASSWORD, name="n" * 256)

        mock_repo.create_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_register_accepts_names_at_the_limit(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Exactly the column width is allowed."""
        mock_repo.create_user = AsyncMock(return_value=_user(is_verified=False))

        await service.register(
            "new@example.com", STRONG_PASSWORD, username="u" * 64, name="n" * 255
        )

        create_kwargs = mock_repo.create_user.await_args.kwargs
        assert create_kwargs["username"] == "u" * 64

    @pytest.mark.asyncio
    async def test_register_store_failure_is_internal(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Unexpected store errors surface as InternalError."""
        mock_repo.create_user = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(InternalError) as exc_info:
            await service.register("test@example.com", STRONG_PASSWORD)

        assert "connection reset" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_register_requires_challenge_when_enabled(
        self,
        mock_repo: MagicMock,
        mock_notifier: MagicMock,
        token_issuer: TokenIssuer,
    ) -> None:
        """A failing challenge blocks registration before any write."""
        challenge = MagicMock()
        challenge.verify = AsyncMock(return_value=False)
        mock_repo.create_user = AsyncMock()
        service = AuthService(mock_repo, mock_notifier, token_issuer, challenge=challenge)

        with pytest.raises(ValidationError, match="Captcha verification failed"):
            await service.register(
                "test@example.com",
                STRONG_PASSWORD,
                challenge=ChallengeAnswer(token="t", answer="2"),
            )

        mock_repo.create_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_register_uses_configured_code_length(
        self,
        mock_repo: MagicMock,
        mock_notifier: MagicMock,
        token_issuer: TokenIssuer,
    ) -> None:
        """Code length comes from AuthConfig."""
        mock_repo.create_user = AsyncMock(return_value=_user(is_verified=False))
        service = AuthService(
            mock_repo, mock_notifier, token_issuer, config=AuthConfig(code_length=8)
        )

        await service.register("test@example.com", STRONG_PASSWORD)

        assert len(mock_repo.issue_code.await_args.kwargs["code"]) == 8


class TestAuthServiceVerifyOtp:
    """Test one-time code verification."""

    @pytest.mark.asyncio
    async def test_verify_email_success(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """A matching code verifies the user and sends a welcome."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user(is_verified=False))
        mock_repo.consume_active_code = AsyncMock(return_value=_code_record())
        mock_repo.update_user_verified = AsyncMock()

        result = await service.verify_otp("test@example.com", "123456", "verify_email")

        assert result.is_verified is True
        mock_repo.update_user_verified.assert_awaited_once_with(1, True)
        mock_notifier.send_welcome.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_verify_email_welcome_exception_still_verifies(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """A notifier that raises doesn't undo or fail the verification."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user(is_verified=False))
        mock_repo.consume_active_code = AsyncMock(return_value=_code_record())
        mock_repo.update_user_verified = AsyncMock()
        mock_notifier.send_welcome = AsyncMock(side_effect=ConnectionError("smtp down"))

        result = await service.verify_otp("test@example.com", "123456", "verify_email")

        assert result.is_verified is True

    @pytest.mark.asyncio
    async def test_verify_email_wrong_code_counts_attempt(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """A mismatch records a failed attempt."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user(is_verified=False))
        mock_repo.consume_active_code = AsyncMock(return_value=None)

        with pytest.raises(InvalidOrExpiredCodeError):
            await service.verify_otp("test@example.com", "000000", CodePurpose.VERIFY_EMAIL)

        mock_repo.record_failed_attempt.assert_awaited_once_with(1, CodePurpose.VERIFY_EMAIL)

    @pytest.mark.asyncio
    async def test_verify_unknown_email(self, service: AuthService) -> None:
        """Unknown email gives the same error as a wrong code."""
        with pytest.raises(InvalidOrExpiredCodeError):
            await service.verify_otp("nobody@example.com", "123456", "verify_email")

    @pytest.mark.asyncio
    async def test_verify_reset_code_marks_verified(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Reset codes are marked verified, not consumed."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_repo.mark_code_verified = AsyncMock(
            return_value=_code_record(CodePurpose.RESET_PASSWORD)
        )
        mock_repo.consume_active_code = AsyncMock()

        result = await service.verify_otp("test@example.com", "123456", "reset_password")

        assert result.id == 1
        args = mock_repo.mark_code_verified.await_args
        assert args.args == (1, CodePurpose.RESET_PASSWORD, "123456")
        assert len(args.kwargs["token_hash"]) == 64
        mock_repo.consume_active_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_verify_reset_code_returns_token(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """The plaintext token is returned once; only its hash is stored."""
        record = _code_record(CodePurpose.RESET_PASSWORD)
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_repo.mark_code_verified = AsyncMock(return_value=record)

        grant = await service.verify_reset_code(" Test@Example.com ", " 123456 ")

        assert grant.user.email == "test@example.com"
        assert grant.expires_at == record.expires_at
        stored_hash = mock_repo.mark_code_verified.await_args.kwargs["token_hash"]
        assert stored_hash == hash_token(grant.token)
        assert stored_hash != grant.token

    @pytest.mark.asyncio
    async def test_verify_reset_code_wrong_code_counts_attempt(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """A mismatch hands out no token and records a failed attempt."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_repo.mark_code_verified = AsyncMock(return_value=None)

        with pytest.raises(InvalidOrExpiredCodeError):
            await service.verify_reset_code("test@example.com", "000000")

        mock_repo.record_failed_attempt.assert_awaited_once_with(1, CodePurpose.RESET_PASSWORD)

    @pytest.mark.asyncio
    async def test_verify_unknown_purpose(self, service: AuthService) -> None:
        """Unknown purposes are validation errors."""
        with pytest.raises(ValidationError, match="Unknown code purpose"):
            await service.verify_otp("test@example.com", "123456", "login")


class TestAuthServiceResend:
    """Test code resend."""

    @pytest.mark.asyncio
    async def test_resend_already_verified(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Verified users can't request another verification code."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user(is_verified=True))

        with pytest.raises(ConflictError, match="Email is already verified"):
            await service.resend_otp_code("test@example.com", "verify_email")

    @pytest.mark.asyncio
    async def test_resend_unknown_email_silent(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """Unknown emails succeed without sending anything."""
        await service.resend_otp_code("nobody@example.com", "verify_email")
        await service.resend_otp_code("nobody@example.com", "reset_password")

        mock_repo.issue_code.assert_not_called()
        mock_notifier.send_verification_code.assert_not_called()
        mock_notifier.send_reset_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_resend_reset_issues_new_code(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """Reset resend issues a fresh reset code with no token attached."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())

        await service.resend_otp_code("test@example.com", "reset_password")

        kwargs = mock_repo.issue_code.await_args.kwargs
        assert kwargs["purpose"] is CodePurpose.RESET_PASSWORD
        assert "token_hash" not in kwargs
        mock_notifier.send_reset_code.assert_awaited_once_with(
            "test@example.com", kwargs["code"], 10
        )


class TestAuthServiceLogin:
    """Test login functionality."""

    @pytest.mark.asyncio
    async def test_login_success(self, service: AuthService, mock_repo: MagicMock) -> None:
        """Should return a token and record a session."""
        mock_repo.get_user_by_email_or_username = AsyncMock(return_value=_user())

        result = await service.login("test@example.com", STRONG_PASSWORD)

        assert result.token
        assert result.token_type == "bearer"
        assert result.user.email == "test@example.com"
        assert result.user.last_signed_in_at is not None
        session_kwargs = mock_repo.create_session.await_args.kwargs
        assert session_kwargs["token_hash"] == hash_token(result.token)
        assert session_kwargs["expires_at"] == result.expires_at

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, service: AuthService, mock_repo: MagicMock) -> None:
        """Should raise InvalidCredentialsError for wrong password."""
        mock_repo.get_user_by_email_or_username = AsyncMock(return_value=_user())

        with pytest.raises(InvalidCredentialsError):
            await service.login("test@example.com", "Wr0ng!Password")

        mock_repo.create_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_login_unknown_user(self, service: AuthService, mock_repo: MagicMock) -> None:
        """Unknown identifier looks exactly like a wrong password."""
        mock_repo.get_user_by_email_or_username = AsyncMock(return_value=None)

        with pytest.raises(InvalidCredentialsError) as exc_info:
            await service.login("nobody@example.com", STRONG_PASSWORD)

        assert exc_info.value.message == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_login_unverified(self, service: AuthService, mock_repo: MagicMock) -> None:
        """Correct password but unverified email."""
        mock_repo.get_user_by_email_or_username = AsyncMock(
            return_value=_user(is_verified=False)
        )

        with pytest.raises(UnverifiedError):
            await service.login("test@example.com", STRONG_PASSWORD)

        mock_repo.create_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_login_unverified_wrong_password(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Unverified state isn't revealed without the right password."""
        mock_repo.get_user_by_email_or_username = AsyncMock(
            return_value=_user(is_verified=False)
        )

        with pytest.raises(InvalidCredentialsError):
            await service.login("test@example.com", "Wr0ng!Password")


class TestAuthServiceSessions:
    """Test logout and authenticate."""

    @pytest.mark.asyncio
    async def test_logout_without_token(self, service: AuthService, mock_repo: MagicMock) -> None:
        """Logging out without a token is a no-op."""
        mock_repo.revoke_session = AsyncMock()

        await service.logout(None)

        mock_repo.revoke_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_logout_revokes_by_hash(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """The session is looked up by token hash."""
        mock_repo.revoke_session = AsyncMock(return_value=True)

        await service.logout("some-token")

        mock_repo.revoke_session.assert_awaited_once_with(hash_token("some-token"))

    @pytest.mark.asyncio
    async def test_authenticate_role_check(
        self, service: AuthService, mock_repo: MagicMock, token_issuer: TokenIssuer
    ) -> None:
        """Users without the required role are forbidden."""
        issued = token_issuer.issue(user_id=1, email="test@example.com", role="user")
        mock_repo.get_session = AsyncMock(
            return_value=Session(
                id=1,
                user_id=1,
                token_hash=hash_token(issued.token),
                expires_at=issued.expires_at,
                created_at=datetime.now(UTC),
            )
        )
        mock_repo.get_user_by_id = AsyncMock(return_value=_user())

        user = await service.authenticate(issued.token)
        assert user.id == 1

        with pytest.raises(ForbiddenError):
            await service.authenticate(issued.token, required_role=UserRole.ADMIN)

    @pytest.mark.asyncio
    async def test_authenticate_unknown_role(
        self, service: AuthService, mock_repo: MagicMock, token_issuer: TokenIssuer
    ) -> None:
        """An unrecognized required role is a validation error, not an internal one."""
        issued = token_issuer.issue(user_id=1, email="test@example.com", role="user")
        mock_repo.get_session = AsyncMock()

        with pytest.raises(ValidationError, match="Unknown role"):
            await service.authenticate(issued.token, required_role="superuser")

        mock_repo.get_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_authenticate_missing_session(
        self, service: AuthService, mock_repo: MagicMock, token_issuer: TokenIssuer
    ) -> None:
        """A valid signature without a session is rejected."""
        issued = token_issuer.issue(user_id=1, email="test@example.com", role="user")
        mock_repo.get_session = AsyncMock(return_value=None)

        with pytest.raises(UnauthorizedError):
            await service.authenticate(issued.token)

    @pytest.mark.asyncio
    async def test_authenticate_bad_token(self, service: AuthService) -> None:
        """Garbage and missing tokens are unauthorized."""
        with pytest.raises(UnauthorizedError):
            await service.authenticate("garbage")
        with pytest.raises(UnauthorizedError):
            await service.authenticate(None)


class TestAuthServicePasswordReset:
    """Test password reset and change."""

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """Unknown emails succeed silently."""
        await service.send_forgot_password_code("nobody@example.com")

        mock_repo.issue_code.assert_not_called()
        mock_notifier.send_reset_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_forgot_password_notifier_failure_silent(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """Delivery failures don't leak to the caller."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_notifier.send_reset_code = AsyncMock(return_value=False)

        await service.send_forgot_password_code("test@example.com")

        mock_repo.issue_code.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_forgot_password_notifier_exception_silent(
        self, service: AuthService, mock_repo: MagicMock, mock_notifier: MagicMock
    ) -> None:
        """A notifier that raises looks the same as an unknown email."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_notifier.send_reset_code = AsyncMock(
            side_effect=UnicodeEncodeError("ascii", "jürgen", 1, 2, "not ascii")
        )

        await service.send_forgot_password_code("test@example.com")

        mock_repo.issue_code.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reset_password_with_token_success(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """A valid token is redeemed by hash and completes the reset."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_repo.consume_reset_token = AsyncMock(
            return_value=_code_record(CodePurpose.RESET_PASSWORD)
        )
        mock_repo.update_user_password = AsyncMock()
        mock_repo.clear_codes_for_purpose = AsyncMock()
        mock_repo.revoke_user_sessions = AsyncMock(return_value=1)

        await service.reset_password_with_token("test@example.com", "reset-token", "N3w!Passw0rd")

        mock_repo.consume_reset_token.assert_awaited_once_with(1, hash_token("reset-token"))
        mock_repo.update_user_password.assert_awaited_once()
        mock_repo.clear_codes_for_purpose.assert_awaited_once_with(1, CodePurpose.RESET_PASSWORD)
        mock_repo.revoke_user_sessions.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_reset_password_with_token_rejected(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """An unknown or spent token leaves the password alone."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_repo.consume_reset_token = AsyncMock(return_value=None)
        mock_repo.update_user_password = AsyncMock()

        with pytest.raises(InvalidOrExpiredCodeError):
            await service.reset_password_with_token("test@example.com", "stale", "N3w!Passw0rd")

        mock_repo.update_user_password.assert_not_called()

    @pytest.mark.asyncio
    async def test_reset_password_with_token_weak_password(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """A weak new password fails before the token is spent."""
        mock_repo.consume_reset_token = AsyncMock()

        with pytest.raises(ValidationError):
            await service.reset_password_with_token("test@example.com", "reset-token", "weak")

        mock_repo.consume_reset_token.assert_not_called()

    @pytest.mark.asyncio
    async def test_reset_password_success(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """A valid code sets the password and revokes every session."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_repo.consume_active_code = AsyncMock(
            return_value=_code_record(CodePurpose.RESET_PASSWORD)
        )
        mock_repo.update_user_password = AsyncMock()
        mock_repo.clear_codes_for_purpose = AsyncMock()
        mock_repo.revoke_user_sessions = AsyncMock(return_value=2)

        await service.reset_password("test@example.com", "123456", "N3w!Passw0rd")

        mock_repo.update_user_password.assert_awaited_once()
        mock_repo.clear_codes_for_purpose.assert_awaited_once_with(1, CodePurpose.RESET_PASSWORD)
        mock_repo.revoke_user_sessions.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_reset_password_weak_keeps_code(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """A weak new password fails before the code is consumed."""
        mock_repo.consume_active_code = AsyncMock()

        with pytest.raises(ValidationError):
            await service.reset_password("test@example.com", "123456", "weak")

        mock_repo.consume_active_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_reset_password_bad_code(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """An invalid code leaves the password alone."""
        mock_repo.get_user_by_email = AsyncMock(return_value=_user())
        mock_repo.consume_active_code = AsyncMock(return_value=None)
        mock_repo.update_user_password = AsyncMock()

        with pytest.raises(InvalidOrExpiredCodeError):
            await service.reset_password("test@example.com", "000000", "N3w!Passw0rd")

        mock_repo.update_user_password.assert_not_called()
        mock_repo.record_failed_attempt.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """Wrong current password is unauthorized."""
        mock_repo.get_user_by_id = AsyncMock(return_value=_user())
        mock_repo.update_user_password = AsyncMock()

        with pytest.raises(UnauthorizedError, match="Current password is incorrect"):
            await service.change_password(1, "Wr0ng!Password", "N3w!Passw0rd")

        mock_repo.update_user_password.assert_not_called()

    @pytest.mark.asyncio
    async def test_change_password_weak_new(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """A weak new password is rejected."""
        mock_repo.get_user_by_id = AsyncMock(return_value=_user())

        with pytest.raises(ValidationError, match="New password does not meet requirements"):
            await service.change_password(1, STRONG_PASSWORD, "weak")

    @pytest.mark.asyncio
    async def test_change_password_success(
        self, service: AuthService, mock_repo: MagicMock
    ) -> None:
        """The new hash is stored."""
        mock_repo.get_user_by_id = AsyncMock(return_value=_user())
        mock_repo.update_user_password = AsyncMock()

        await service.change_password(1, STRONG_PASSWORD, "N3w!Passw0rd")

        user_id, new_hash = mock_repo.update_user_password.await_args.args
        assert user_id == 1
        assert new_hash.startswith("$2b$")
