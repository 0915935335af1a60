"""In-memory credential store for tests and local development."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from osmora.core.auth.errors import ConflictError
from osmora.core.auth.types import CodePurpose, Session, User, UserRole, VerificationCode


class InMemoryCredentialStore:
    """Credential store kept in process memory.

    This store is useful for:
    - Unit and integration testing without PostgreSQL
    - Local development and demos

    All mutations run under one asyncio.Lock, which gives the same
    atomicity guarantees as the single-statement PostgreSQL store.
    Data is lost when the process exits.

    Attributes:
        users: Users by id.
        sessions: Sessions by token hash.
        codes: The single code row per (user_id, purpose).
    """

    def __init__(self) -> None:
        """Initialize empty tables."""
        self.users: dict[int, User] = {}
        self.sessions: dict[str, Session] = {}
        self.codes: dict[tuple[int, CodePurpose], VerificationCode] = {}
        self._lock = asyncio.Lock()
        self._next_user_id = 1
        self._next_session_id = 1
        self._next_code_id = 1

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
        async with self._lock:
            email = email.lower()
            for existing in self.users.values():
                if existing.email == email:
                    raise ConflictError("Email already registered")
                if username and existing.username == username:
                    raise ConflictError("Username already taken")

            now = datetime.now(UTC)
            user = User(
                id=self._next_user_id,
                email=email,
                username=username,
                name=name,
                password_hash=password_hash,
                role=role,
                is_verified=False,
                created_at=now,
                updated_at=now,
            )
            self._next_user_id += 1
            self.users[user.id] = user
            return user.model_copy()

    async def get_user_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        user = self.users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        email = email.lower()
        for user in self.users.values():
            if user.email == email:
                return user.model_copy()
        return None

    async def get_user_by_username(self, username: str) -> User | None:
        """Get user by exact username."""
        for user in self.users.values():
            if user.username is not None and user.username == username:
                return user.model_copy()
        return None

    async def get_user_by_email_or_username(self, identifier: str) -> User | None:
        """Get user whose email (case-insensitive) or username matches."""
        return await self.get_user_by_email(identifier) or await self.get_user_by_username(
            identifier
        )

    async def update_user_password(self, user_id: int, password_hash: str) -> None:
        """Replace a user's password hash."""
        await self._update_user(user_id, password_hash=password_hash)

    async def update_user_verified(self, user_id: int, is_verified: bool) -> None:
        """Set a user's verified flag."""
        await self._update_user(user_id, is_verified=is_verified)

    async def update_user_last_signed_in(self, user_id: int) -> None:
        """Stamp the user's last sign-in time with now."""
        await self._update_user(user_id, last_signed_in_at=datetime.now(UTC))

    async def _update_user(self, user_id: int, **fields: object) -> None:
        async with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return
            fields["updated_at"] = datetime.now(UTC)
            self.users[user_id] = user.model_copy(update=fields)

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
        async with self._lock:
            session = Session(
                id=self._next_session_id,
                user_id=user_id,
                token_hash=token_hash,
                expires_at=expires_at,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=datetime.now(UTC),
            )
            self._next_session_id += 1
            self.sessions[token_hash] = session
            return session.model_copy()

    async def get_session(self, token_hash: str) -> Session | None:
        """Get a session by token hash, revoked or not."""
        session = self.sessions.get(token_hash)
        return session.model_copy() if session else None

    async def revoke_session(self, token_hash: str) -> bool:
        """Mark a session revoked."""
        async with self._lock:
            session = self.sessions.get(token_hash)
            if session is None or session.revoked_at is not None:
                return False
            self.sessions[token_hash] = session.model_copy(
                update={"revoked_at": datetime.now(UTC)}
            )
            return True

    async def revoke_user_sessions(self, user_id: int) -> int:
        """Revoke every active session of a user."""
        async with self._lock:
            now = datetime.now(UTC)
            revoked = 0
            for token_hash, session in self.sessions.items():
                if session.user_id == user_id and session.revoked_at is None:
                    self.sessions[token_hash] = session.model_copy(update={"revoked_at": now})
                    revoked += 1
            return revoked

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
        """Replace the code row for (user, purpose)."""
        async with self._lock:
            now = datetime.now(UTC)
            record = VerificationCode(
                id=self._next_code_id,
                user_id=user_id,
                purpose=purpose,
                code=code,
                expires_at=expires_at,
                max_attempts=max_attempts,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=now,
                updated_at=now,
            )
            self._next_code_id += 1
            self.codes[(user_id, purpose)] = record
            return record.model_copy()

    async def get_active_code(self, user_id: int, purpose: CodePurpose) -> VerificationCode | None:
        """Get the active code for (user, purpose), if any."""
        record = self.codes.get((user_id, purpose))
        if record is None or not record.is_active():
            return None
        return record.model_copy()

    async def consume_active_code(
        self,
        user_id: int,
        purpose: CodePurpose,
        code: str,
    ) -> VerificationCode | None:
        """Atomically mark a matching active code used."""
        async with self._lock:
            record = self.codes.get((user_id, purpose))
            if record is None or not record.is_active() or record.code != code:
                return None
            now = datetime.now(UTC)
            record = record.model_copy(update={"used_at": now, "updated_at": now})
            self.codes[(user_id, purpose)] = record
            return record.model_copy()

    async def mark_code_verified(
        self,
        user_id: int,
        purpose: CodePurpose,
        code: str,
        token_hash: str | None = None,
    ) -> VerificationCode | None:
        """Atomically stamp verified_at (and bind token_hash) on a matching active code."""
        async with self._lock:
            record = self.codes.get((user_id, purpose))
            if (
                record is None
                or not record.is_active()
                or record.verified_at is not None
                or record.code != code
            ):
                return None
            now = datetime.now(UTC)
            record = record.model_copy(
                update={"verified_at": now, "token_hash": token_hash, "updated_at": now}
            )
            self.codes[(user_id, purpose)] = record
            return record.model_copy()

    async def consume_reset_token(self, user_id: int, token_hash: str) -> VerificationCode | None:
        """Atomically mark used the verified reset code bound to token_hash."""
        async with self._lock:
            key = (user_id, CodePurpose.RESET_PASSWORD)
            record = self.codes.get(key)
            if (
                record is None
                or not record.is_active()
                or record.verified_at is None
                or record.token_hash != token_hash
            ):
                return None
            now = datetime.now(UTC)
            record = record.model_copy(update={"used_at": now, "updated_at": now})
            self.codes[key] = record
            return record.model_copy()

    async def record_failed_attempt(self, user_id: int, purpose: CodePurpose) -> int:
        """Increment the failed-attempt counter of the active code."""
        async with self._lock:
            record = self.codes.get((user_id, purpose))
            if record is None or not record.is_active():
                return 0
            record = record.model_copy(
                update={
                    "attempt_count": record.attempt_count + 1,
                    "updated_at": datetime.now(UTC),
                }
            )
            self.codes[(user_id, purpose)] = record
            return record.attempt_count

    async def clear_codes_for_purpose(self, user_id: int, purpose: CodePurpose) -> None:
        """Delete all codes for (user, purpose)."""
        async with self._lock:
            self.codes.pop((user_id, purpose), None)
