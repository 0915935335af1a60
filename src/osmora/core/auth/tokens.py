"""Opaque token helpers for reset tokens and session lookup."""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta

RESET_TOKEN_BYTES = 32  # 256 bits


def generate_reset_token() -> str:
    """Mint a URL-safe reset token from the OS CSPRNG."""
    return secrets.token_urlsafe(RESET_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Digest a bearer or reset token for storage and lookup.

    Plain SHA-256 is enough here: the inputs are high-entropy random or
    signed values, not user-chosen secrets.

    Args:
        token: Plaintext token.

    Returns:
        64-character lowercase hex digest.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_token_expiry(*, hours: int = 0, minutes: int = 0) -> datetime:
    """Aware UTC timestamp ``hours`` + ``minutes`` from now."""
    return datetime.now(UTC) + timedelta(hours=hours, minutes=minutes)


def is_token_expired(expires_at: datetime) -> bool:
    """True once ``expires_at`` is reached. Naive values are read as UTC."""
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return datetime.now(UTC) >= expires_at
