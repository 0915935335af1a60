"""Dependency wiring and application lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from osmora.adapters.auth import InMemoryCredentialStore, PostgresCredentialStore
from osmora.adapters.db.app_db import AppDatabase
from osmora.adapters.notifications import ConsoleNotifier, EmailConfig, EmailNotifier
from osmora.core.auth import (
    ArithmeticChallenge,
    AuthConfig,
    AuthNotifier,
    AuthService,
    ChallengeVerifier,
    CredentialStore,
    JwtConfig,
    TokenIssuer,
)
from osmora.core.auth.codes import (
    CODE_LENGTH,
    MAX_CODE_ATTEMPTS,
    RESET_PASSWORD_TTL_MINUTES,
    VERIFY_EMAIL_TTL_HOURS,
)

logger = structlog.get_logger()


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.environment = os.getenv("OSMORA_ENV", "development")
        # Empty means no PostgreSQL: the in-memory store is used instead
        self.database_url = os.getenv("DATABASE_URL", "")

        # Notifier: "email", "console" or "auto" (email when SMTP_HOST is set)
        self.notifier_type = os.getenv("NOTIFIER_TYPE", "auto").strip().lower()
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER") or None
        self.smtp_password = os.getenv("SMTP_PASSWORD") or None
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL", "noreply@osmora.xyz")
        self.smtp_from_name = os.getenv("SMTP_FROM_NAME", "OSMORA AI")
        self.smtp_use_tls = _env_bool("SMTP_USE_TLS", True)

        # Anti-automation challenge on public flows
        self.captcha_enabled = _env_bool("CAPTCHA_ENABLED", False)
        self.captcha_secret_key = os.getenv("CAPTCHA_SECRET_KEY", "")

        # One-time codes
        self.code_length = int(os.getenv("AUTH_CODE_LENGTH", str(CODE_LENGTH)))
        self.max_code_attempts = int(os.getenv("AUTH_MAX_CODE_ATTEMPTS", str(MAX_CODE_ATTEMPTS)))
        self.verify_email_ttl_hours = int(
            os.getenv("AUTH_VERIFY_EMAIL_TTL_HOURS", str(VERIFY_EMAIL_TTL_HOURS))
        )
        self.reset_password_ttl_minutes = int(
            os.getenv("AUTH_RESET_PASSWORD_TTL_MINUTES", str(RESET_PASSWORD_TTL_MINUTES))
        )

    @property
    def is_production(self) -> bool:
        """Whether insecure development fallbacks must be refused."""
        return self.environment == "production"

    def auth_config(self) -> AuthConfig:
        """One-time code settings for the auth service."""
        return AuthConfig(
            code_length=self.code_length,
            verify_email_ttl_hours=self.verify_email_ttl_hours,
            reset_password_ttl_minutes=self.reset_password_ttl_minutes,
            max_code_attempts=self.max_code_attempts,
        )


def build_notifier(settings: Settings) -> AuthNotifier:
    """Pick the code delivery channel.

    Raises:
        ValueError: If NOTIFIER_TYPE is unknown, or email is requested without SMTP_HOST.
    """
    kind = settings.notifier_type
    if kind == "auto":
        kind = "email" if settings.smtp_host else "console"

    if kind == "console":
        if settings.is_production:
            logger.warning("console_notifier_in_production")
        return ConsoleNotifier()

    if kind == "email":
        if not settings.smtp_host:
            raise ValueError("SMTP_HOST is required when NOTIFIER_TYPE=email")
        return EmailNotifier(
            EmailConfig(
                smtp_host=settings.smtp_host,
                smtp_port=settings.smtp_port,
                smtp_user=settings.smtp_user,
                smtp_password=settings.smtp_password,
                from_email=settings.smtp_from_email,
                from_name=settings.smtp_from_name,
                use_tls=settings.smtp_use_tls,
            )
        )

    raise ValueError(f"Unknown NOTIFIER_TYPE: {settings.notifier_type}")


def build_challenge(settings: Settings, fallback_secret: str) -> ChallengeVerifier | None:
    """Build the challenge verifier, or None when the gate is disabled."""
    if not settings.captcha_enabled:
        return None
    return ArithmeticChallenge(settings.captcha_secret_key or fallback_secret)


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[AuthService]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - Credential store setup (PostgreSQL pool or in-memory)
    - Notifier, token issuer and challenge construction
    - Closing the database pool on exit
    """
    settings = settings or Settings()

    jwt_config = JwtConfig.from_env(settings.environment)

    app_db: AppDatabase | None = None
    repo: CredentialStore
    if settings.database_url:
        app_db = AppDatabase(settings.database_url)
        await app_db.connect()
        await app_db.apply_schema()
        repo = PostgresCredentialStore(app_db)
    else:
        if settings.is_production:
            raise RuntimeError("DATABASE_URL must be set in production")
        logger.warning("using_in_memory_credential_store")
        repo = InMemoryCredentialStore()

    service = AuthService(
        repo=repo,
        notifier=build_notifier(settings),
        issuer=TokenIssuer(jwt_config),
        challenge=build_challenge(settings, jwt_config.secret_key),
        config=settings.auth_config(),
    )
    logger.info(
        "auth_service_ready",
        environment=settings.environment,
        store=type(repo).__name__,
        captcha_enabled=settings.captcha_enabled,
    )

    try:
        yield service
    finally:
        if app_db is not None:
            await app_db.close()
