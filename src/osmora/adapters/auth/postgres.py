"""PostgreSQL implementation of CredentialStore."""

from datetime import datetime
from typing import Any

import asyncpg

from osmora.adapters.db.app_db import AppDatabase
from osmora.core.auth.errors import ConflictError
from osmora.core.auth.types import CodePurpose, Session, User, UserRole, VerificationCode
from osmora.core.exceptions import StoreError

# A code row is usable only while all of these hold
_ACTIVE_CODE = "used_at IS NULL AND expires_at > NOW() AND attempt_count < max_attempts"


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg status string like 'UPDATE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, IndexError):
        return 0


class PostgresCredentialStore:
    """PostgreSQL implementation of the credential store.

    Every code-guarding operation is a single statement, so atomicity comes
    from PostgreSQL row locking rather than application-level locks.
    """

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_user(self, row: dict[str, Any]) -> User:
        """Convert database row to User model."""
        return User(
            id=row["id"],
            email=row["email"],
            username=row.get("username"),
            name=row.get("name"),
            password_hash=row.get("password_hash"),
            role=UserRole(row.get("role", "user")),
            is_verified=row.get("is_verified", False),
            last_signed_in_at=row.get("last_signed_in_at"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

    def _row_to_session(self, row: dict[str, Any]) -> Session:
        """Convert database row to Session model."""
        return Session(
            id=row["id"],
            user_id=row["user_id"],
            token_hash=row["token_hash"],
            expires_at=row["expires_at"],
            ip_address=row.get("ip_address"),
            user_agent=row.get("user_agent"),
            revoked_at=row.get("revoked_at"),
            created_at=row["created_at"],
        )

    def _row_to_code(self, row: dict[str, Any]) -> VerificationCode:
        """Convert database row to VerificationCode model."""
        return VerificationCode(
            id=row["id"],
            user_id=row["user_id"],
            purpose=CodePurpose(row["purpose"]),
            code=row["code"],
            token_hash=row.get("token_hash"),
            expires_at=row["expires_at"],
            attempt_count=row.get("attempt_count", 0),
            max_attempts=row.get("max_attempts", 5),
            ip_address=row.get("ip_address"),
            user_agent=row.get("user_agent"),
            verified_at=row.get("verified_at"),
            used_at=row.get("used_at"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )

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
        try:
            row = await self._db.fetch_one(
                """
                INSERT INTO users (email, username, name, password_hash, role)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                email.lower(),
                username,
                name,
                password_hash,
                role.value,
            )
        except asyncpg.UniqueViolationError as e:
            # Lost a race with a concurrent registration
            constraint = getattr(e, "constraint_name", None) or ""
            if "username" in constraint:
                raise ConflictError("Username already taken") from None
            raise ConflictError("Email already registered") from None
        if row is None:
            raise StoreError("INSERT INTO users returned no row")
        return self._row_to_user(row)

    async def get_user_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        row = await self._db.fetch_one("SELECT * FROM users WHERE id = $1", user_id)
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address."""
        row = await self._db.fetch_one("SELECT * FROM users WHERE email = $1", email.lower())
        return self._row_to_user(row) if row else None

    async def get_user_by_username(self, username: str) -> User | None:
        """Get user by exact username."""
        row = await self._db.fetch_one("SELECT * FROM users WHERE username = $1", username)
        return self._row_to_user(row) if row else None

    async def get_user_by_email_or_username(self, identifier: str) -> User | None:
        """Get user whose email (case-insensitive) or username matches."""
        row = await self._db.fetch_one(
            """
            SELECT * FROM users
            WHERE email = LOWER($1) OR username = $1
            ORDER BY (email = LOWER($1)) DESC
            LIMIT 1
            """,
            identifier,
        )
        return self._row_to_user(row) if row else None

    async def update_user_password(self, user_id: int, password_hash: str) -> None:
        """Replace a user's password hash."""
        await self._db.execute(
            "UPDATE users SET password_hash = $1, updated_at = NOW() WHERE id = $2",
            password_hash,
            user_id,
        )

    async def update_user_verified(self, user_id: int, is_verified: bool) -> None:
        """Set a user's verified flag."""
        await self._db.execute(
            "UPDATE users SET is_verified = $1, updated_at = NOW() WHERE id = $2",
            is_verified,
            user_id,
        )

    async def update_user_last_signed_in(self, user_id: int) -> None:
        """Stamp the user's last sign-in time with now."""
        await self._db.execute(
            "UPDATE users SET last_signed_in_at = NOW(), updated_at = NOW() WHERE id = $1",
            user_id,
        )

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
        row = await self._db.fetch_one(
            """
            INSERT INTO sessions (user_id, token_hash, expires_at, ip_address, user_agent)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            user_id,
            token_hash,
            expires_at,
            ip_address,
            user_agent,
        )
        if row is None:
            raise StoreError("INSERT INTO sessions returned no row")
        return self._row_to_session(row)

    async def get_session(self, token_hash: str) -> Session | None:
        """Get a session by token hash, revoked or not."""
        row = await self._db.fetch_one("SELECT * FROM sessions WHERE token_hash = $1", token_hash)
        return self._row_to_session(row) if row else None

    async def revoke_session(self, token_hash: str) -> bool:
        """Mark a session revoked."""
        status = await self._db.execute(
            "UPDATE sessions SET revoked_at = NOW() WHERE token_hash = $1 AND revoked_at IS NULL",
            token_hash,
        )
        return _affected_rows(status) > 0

    async def revoke_user_sessions(self, user_id: int) -> int:
        """Revoke every active session of a user."""
        status = await self._db.execute(
            "UPDATE sessions SET revoked_at = NOW() WHERE user_id = $1 AND revoked_at IS NULL",
            user_id,
        )
        return _affected_rows(status)

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
        """Upsert the single code row for (user, purpose)."""
        row = await self._db.fetch_one(
            """
            INSERT INTO verification_codes
                (user_id, purpose, code, expires_at, max_attempts, ip_address, user_agent)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (user_id, purpose) DO UPDATE SET
                code = EXCLUDED.code,
                token_hash = NULL,
                expires_at = EXCLUDED.expires_at,
                attempt_count = 0,
                max_attempts = EXCLUDED.max_attempts,
                ip_address = EXCLUDED.ip_address,
                user_agent = EXCLUDED.user_agent,
                verified_at = NULL,
                used_at = NULL,
                created_at = NOW(),
                updated_at = NOW()
            RETURNING *
            """,
            user_id,
            purpose.value,
            code,
            expires_at,
            max_attempts,
            ip_address,
            user_agent,
        )
        if row is None:
            raise StoreError("verification code upsert returned no row")
        return self._row_to_code(row)

    async def get_active_code(self, user_id: int, purpose: CodePurpose) -> VerificationCode | None:
        """Get the active code for (user, purpose), if any."""
        row = await self._db.fetch_one(
            f"""
            SELECT * FROM verification_codes
            WHERE user_id = $1 AND purpose = $2 AND {_ACTIVE_CODE}
            """,
            user_id,
            purpose.value,
        )
        return self._row_to_code(row) if row else None

    async def consume_active_code(
        self,
        user_id: int,
        purpose: CodePurpose,
        code: str,
    ) -> VerificationCode | None:
        """Atomically mark a matching active code used."""
        row = await self._db.fetch_one(
            f"""
            UPDATE verification_codes
            SET used_at = NOW(), updated_at = NOW()
            WHERE user_id = $1 AND purpose = $2 AND code = $3 AND {_ACTIVE_CODE}
            RETURNING *
            """,
            user_id,
            purpose.value,
            code,
        )
        return self._row_to_code(row) if row else None

    async def mark_code_verified(
        self,
        user_id: int,
        purpose: CodePurpose,
        code: str,
        token_hash: str | None = None,
    ) -> VerificationCode | None:
        """Atomically stamp verified_at (and bind token_hash) on a matching active code."""
        row = await self._db.fetch_one(
            f"""
            UPDATE verification_codes
            SET verified_at = NOW(), token_hash = $4, updated_at = NOW()
            WHERE user_id = $1 AND purpose = $2 AND code = $3
              AND verified_at IS NULL AND {_ACTIVE_CODE}
            RETURNING *
            """,
            user_id,
            purpose.value,
            code,
            token_hash,
        )
        return self._row_to_code(row) if row else None

    async def consume_reset_token(self, user_id: int, token_hash: str) -> VerificationCode | None:
        """Atomically mark used the verified reset code bound to token_hash."""
        row = await self._db.fetch_one(
            f"""
            UPDATE verification_codes
            SET used_at = NOW(), updated_at = NOW()
            WHERE user_id = $1 AND purpose = $2 AND token_hash = $3
              AND verified_at IS NOT NULL AND {_ACTIVE_CODE}
            RETURNING *
            """,
            user_id,
            CodePurpose.RESET_PASSWORD.value,
            token_hash,
        )
        return self._row_to_code(row) if row else None

    async def record_failed_attempt(self, user_id: int, purpose: CodePurpose) -> int:
        """Increment the failed-attempt counter of the active code."""
        row = await self._db.fetch_one(
            f"""
            UPDATE verification_codes
            SET attempt_count = attempt_count + 1, updated_at = NOW()
            WHERE user_id = $1 AND purpose = $2 AND {_ACTIVE_CODE}
            RETURNING attempt_count
            """,
            user_id,
            purpose.value,
        )
        return int(row["attempt_count"]) if row else 0

    async def clear_codes_for_purpose(self, user_id: int, purpose: CodePurpose) -> None:
        """Delete all codes for (user, purpose)."""
        await self._db.execute(
            "DELETE FROM verification_codes WHERE user_id = $1 AND purpose = $2",
            user_id,
            purpose.value,
        )
