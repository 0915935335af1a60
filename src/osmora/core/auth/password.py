"""Password hashing and strength rules using bcrypt."""

import base64
import hashlib
import secrets
import string

import bcrypt

from osmora.core.auth.types import PasswordCheck

# bcrypt work factor. Hashes embed their own cost, so raising this
# does not invalidate stored hashes.
BCRYPT_ROUNDS = 12

MIN_PASSWORD_LENGTH = 8
SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"


def _prehash(password: str) -> bytes:
    """SHA-256 then base64, so bcrypt sees 44 NUL-free bytes for any input length."""
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    The password is pre-hashed, so inputs past bcrypt's 72-byte limit are
    neither rejected nor truncated.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash string
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(_prehash(password), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash.

    Args:
        plain_password: Plain text password to check
        hashed_password: Bcrypt hash to check against

    Returns:
        True if password matches hash. False for empty input or a
        malformed hash.
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_prehash(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        # "Invalid salt" and friends
        return False


def validate_password_strength(password: str) -> PasswordCheck:
    """Check a password against every strength rule.

    Rules are evaluated independently so the caller sees all violations
    at once, always in the same order.

    Args:
        password: Plain text password

    Returns:
        PasswordCheck with is_valid and the ordered list of violated rules.
    """
    errors: list[str] = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(c in string.ascii_uppercase for c in password):
        errors.append("Password must contain at least one uppercase letter")
    if not any(c in string.ascii_lowercase for c in password):
        errors.append("Password must contain at least one lowercase letter")
    if not any(c in string.digits for c in password):
        errors.append("Password must contain at least one number")
    if not any(c in SPECIAL_CHARACTERS for c in password):
        errors.append("Password must contain at least one special character")

    return PasswordCheck(is_valid=not errors, errors=errors)


def generate_random_password(length: int = 16) -> str:
    """Generate a random password that satisfies the strength rules.

    Args:
        length: Total password length (at least 4).

    Returns:
        Password with at least one character from every required class.
    """
    if length < 4:
        raise ValueError("length must be at least 4")

    classes = [
        string.ascii_uppercase,
        string.ascii_lowercase,
        string.digits,
        SPECIAL_CHARACTERS,
    ]
    alphabet = "".join(classes)

    chars = [secrets.choice(c) for c in classes]
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    # SystemRandom shuffle so the required classes are not always in front
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
