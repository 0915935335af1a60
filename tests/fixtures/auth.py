"""Auth fixtures: stores, notifiers and a wired service."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from osmora.adapters.auth import InMemoryCredentialStore
from osmora.core.auth import AuthService, JwtConfig, TokenIssuer

TEST_SECRET = "test-secret-key-that-is-at-least-32-bytes-long"  # pragma: allowlist secret
STRONG_PASSWORD = "Str0ng!Pass"  # pragma: allowlist secret
OTHER_STRONG_PASSWORD = "N3w!Passw0rd"  # pragma: allowlist secret


@pytest.fixture
def jwt_config() -> JwtConfig:
    """Signing config with a fixed test secret."""
    return JwtConfig(secret_key=TEST_SECRET)


@pytest.fixture
def issuer(jwt_config: JwtConfig) -> TokenIssuer:
    """Token issuer bound to the test secret."""
    return TokenIssuer(jwt_config)


@pytest.fixture
def memory_store() -> InMemoryCredentialStore:
    """Fresh in-memory credential store."""
    return InMemoryCredentialStore()


@pytest.fixture
def notifier() -> MagicMock:
    """Notifier that records every send and reports success."""
    mock = MagicMock()
    mock.send_verification_code = AsyncMock(return_value=True)
    mock.send_reset_code = AsyncMock(return_value=True)
    mock.send_welcome = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def auth_service(
    memory_store: InMemoryCredentialStore,
    notifier: MagicMock,
    issuer: TokenIssuer,
) -> AuthService:
    """Auth service over the in-memory store."""
    return AuthService(memory_store, notifier, issuer)


def last_verification_code(notifier: MagicMock) -> str:
    """Code passed to the most recent send_verification_code call."""
    return str(notifier.send_verification_code.await_args.args[1])


def last_reset_code(notifier: MagicMock) -> str:
    """Code passed to the most recent send_reset_code call."""
    return str(notifier.send_reset_code.await_args.args[1])
