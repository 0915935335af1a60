"""One-time numeric code generation."""

import secrets

CODE_LENGTH = 6
VERIFY_EMAIL_TTL_HOURS = 24
RESET_PASSWORD_TTL_MINUTES = 10
MAX_CODE_ATTEMPTS = 5


def generate_code(length: int = CODE_LENGTH) -> str:
    """Generate a zero-padded numeric one-time code.

    Drawn from the OS CSPRNG, so outputs are uniform over all
    ``10**length`` values and not predictable from earlier codes.

    Args:
        length: Number of digits.

    Returns:
        String of exactly ``length`` decimal digits.
    """
    if length < 1:
        raise ValueError("length must be at least 1")
    return str(secrets.randbelow(10**length)).zfill(length)
