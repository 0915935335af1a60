"""Notifier protocol for delivering one-time codes.

The auth service only depends on this contract. Adapters decide how the
code reaches the user:
- EmailNotifier: SMTP email (default when SMTP is configured)
- ConsoleNotifier: prints codes to stdout (local development, demos)
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AuthNotifier(Protocol):
    """Protocol for out-of-band code delivery.

    Every method returns True when the message was handed off
    successfully. Delivery failures are reported as False rather than
    raised, and the service logs them.
    """

    async def send_verification_code(self, email: str, code: str, ttl_hours: int) -> bool:
        """Deliver an email verification code.

        Args:
            email: Recipient address.
            code: The plaintext one-time code.
            ttl_hours: How long the code stays valid, for the message body.

        Returns:
            True if the message was sent.
        """
        ...

    async def send_reset_code(self, email: str, code: str, ttl_minutes: int) -> bool:
        """Deliver a password reset code.

        Args:
            email: Recipient address.
            code: The plaintext one-time code.
            ttl_minutes: How long the code stays valid, for the message body.

        Returns:
            True if the message was sent.
        """
        ...

    async def send_welcome(self, email: str, name: str) -> bool:
        """Deliver the welcome message after email verification.

        Args:
            email: Recipient address.
            name: Display name for the greeting.

        Returns:
            True if the message was sent.
        """
        ...
