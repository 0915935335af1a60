"""Anti-automation challenge protocol and the built-in arithmetic challenge.

The arithmetic challenge is a placeholder gate. A real CAPTCHA provider
can be plugged in by implementing ChallengeVerifier; the auth service
does not care which one it gets.
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

CHALLENGE_TTL_SECONDS = 300


@dataclass(frozen=True)
class Challenge:
    """A question shown to the user plus an opaque token to send back."""

    question: str
    token: str


@dataclass(frozen=True)
class ChallengeAnswer:
    """The user's response to a challenge."""

    token: str
    answer: str


@runtime_checkable
class ChallengeVerifier(Protocol):
    """Protocol for anti-automation checks on public auth endpoints."""

    async def verify(self, answer: ChallengeAnswer | None) -> bool:
        """Return True if the answer solves the challenge it was issued for."""
        ...


class ArithmeticChallenge:
    """Stateless "a + b" challenge.

    The token is ``nonce.expiry.mac`` where mac is an HMAC-SHA256 over
    nonce, expiry and the expected answer, so nothing is stored server-side.
    Tokens can be replayed until they expire.
    """

    def __init__(self, secret_key: str, ttl_seconds: int = CHALLENGE_TTL_SECONDS) -> None:
        """Initialize the challenge issuer.

        Args:
            secret_key: Key for signing challenge tokens.
            ttl_seconds: How long an issued challenge can be answered.
        """
        self._key = secret_key.encode("utf-8")
        self._ttl = ttl_seconds

    def issue(self) -> Challenge:
        """Create a new challenge."""
        a = secrets.randbelow(10) + 1
        b = secrets.randbelow(10) + 1
        nonce = secrets.token_hex(8)
        expires = int(time.time()) + self._ttl
        mac = self._sign(nonce, expires, str(a + b))
        return Challenge(question=f"{a} + {b}", token=f"{nonce}.{expires}.{mac}")

    async def verify(self, answer: ChallengeAnswer | None) -> bool:
        """Check an answer against its signed token."""
        if answer is None:
            return False
        try:
            nonce, expires_raw, mac = answer.token.split(".")
            expires = int(expires_raw)
        except ValueError:
            return False
        if expires < int(time.time()):
            return False
        expected = self._sign(nonce, expires, answer.answer.strip())
        return hmac.compare_digest(expected, mac)

    def _sign(self, nonce: str, expires: int, answer: str) -> str:
        message = f"{nonce}.{expires}.{answer}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()
