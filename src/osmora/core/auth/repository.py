"""Credential store protocol for auth persistence."""

from datetime import datetime
from typing import Protocol, runtime_checkable

from osmora.core.auth.types import CodePurpose, Session, User, UserRole, VerificationCode


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol for auth database operations.

    Implementations provide actual storage (PostgreSQL, in-memory).
    Emails are passed in already lower-cased.

    Operations that guard one-time codes (``issue_code``,
    ``consume_active_code``, ``mark_code_verified``, ``consume_reset_token``)
    must each be atomic: two concurrent calls must never both observe the
    same active code.
    """

    # User operations
    async def create_user(
        self,
        email: str,
        password_hash: str | None,
        username: str | None = None,
        name: str | None = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Create a new, unverified user."""
        ...

    async def get_user_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        ...

    async def get_user_by_username(self, username: str) -> User | None:
        """Get user by exact username."""
        ...

    async def get_user_by_email_or_username(self, identifier: str) -> User | None:
        """Get user whose email (case-insensitive) or username matches."""
        ...

    async def update_user_password(self, user_id: int, password_hash: str) -> None:
        """Replace a user's password hash."""
        ...

    async def update_user_verified(self, user_id: int, is_verified: bool) -> None:
        """Set a user's verified flag."""
        ...

    async def update_user_last_signed_in(self, user_id: int) -> None:
        """Stamp the user's last sign-in time with now."""
        ...

    # Session operations
    async def create_session(
        self,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Session:
        """Record a session bound to a token hash."""
        ...

    async def get_session(self, token_hash: str) -> Session | None:
        """Get a session by token hash, revoked or not."""
        ...

    async def revoke_session(self, token_hash: str) -> bool:
        """Mark a session revoked. Returns True if an active session was revoked."""
        ...

    async def revoke_user_sessions(self, user_id: int) -> int:
        """Revoke every active session of a user. Returns how many were revoked."""
        ...

    # One-time code operations
    async def issue_code(
        self,
        user_id: int,
        purpose: CodePurpose,
        code: str,
        expires_at: datetime,
        max_attempts: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> VerificationCode:
        """Create the code for (user, purpose), replacing any previous one.

        Replacing also drops any reset token bound to the previous code.
        """
        ...

    async def get_active_code(self, user_id: int, purpose: CodePurpose) -> VerificationCode | None:
        """Get the active code for (user, purpose), if any."""
        ...

    async def consume_active_code(
        self,
        user_id: int,
        purpose: CodePurpose,
        code: str,
    ) -> VerificationCode | None:
        """Atomically mark a matching active code used and return it.

        Returns None if no active code matches.
        """
        ...

    async def mark_code_verified(
        self,
        user_id: int,
        purpose: CodePurpose,
        code: str,
        token_hash: str | None = None,
    ) -> VerificationCode | None:
        """Atomically stamp verified_at on a matching active, not yet verified code.

        When given, token_hash is stored on the row and can later be
        redeemed with ``consume_reset_token``. The code stays active
        (unused). Returns None if nothing matched.
        """
        ...

    async def consume_reset_token(self, user_id: int, token_hash: str) -> VerificationCode | None:
        """Atomically mark used the active, verified reset code bound to token_hash.

        Returns None if no such code exists.
        """
        ...

    async def record_failed_attempt(self, user_id: int, purpose: CodePurpose) -> int:
        """Increment the failed-attempt counter of the active code.

        Returns the new count, or 0 if there is no active code.
        """
        ...

    async def clear_codes_for_purpose(self, user_id: int, purpose: CodePurpose) -> None:
        """Delete all codes for (user, purpose)."""
        ...
