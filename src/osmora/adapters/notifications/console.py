"""Console-based notifier for demo/dev mode.

Prints one-time codes to stdout so developers can use them directly.
"""

from osmora.core.auth.notifier import AuthNotifier


class ConsoleNotifier:
    """Console-based code delivery for demo/dev mode.

    Instead of sending an email, prints the code to the console. This is
    useful for:
    - Local development without SMTP setup
    - Demo environments
    - Walking through the verification and reset flows by hand
    """

    def _print(self, title: str, email: str, lines: list[str]) -> bool:
        # Print with clear formatting so it's visible in logs
        print("\n" + "=" * 70, flush=True)
        print(f"[{title}] generated for demo/dev mode", flush=True)
        print(f"  Email: {email}", flush=True)
        for line in lines:
            print(f"  {line}", flush=True)
        print("=" * 70 + "\n", flush=True)
        return True

    async def send_verification_code(self, email: str, code: str, ttl_hours: int) -> bool:
        """Print the verification code to the console."""
        return self._print(
            "EMAIL VERIFICATION", email, [f"Code:  {code}", f"Valid: {ttl_hours} hours"]
        )

    async def send_reset_code(self, email: str, code: str, ttl_minutes: int) -> bool:
        """Print the password reset code to the console."""
        return self._print(
            "PASSWORD RESET", email, [f"Code:  {code}", f"Valid: {ttl_minutes} minutes"]
        )

    async def send_welcome(self, email: str, name: str) -> bool:
        """Print the welcome notice to the console."""
        return self._print("WELCOME", email, [f"Hello {name}, your email is verified."])


# Verify we implement the protocol
_notifier: AuthNotifier = ConsoleNotifier()
