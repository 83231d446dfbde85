"""
Account password hashing and policy, bcrypt based.
"""

import bcrypt

from app.errors import BadRequestError
from app.settings import settings

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with a fresh salt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a stored hash. A malformed hash never matches."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES],
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return False


def check_password_policy(password: str | None) -> str:
    """Return the password if it satisfies the account policy, else BAD_REQUEST."""
    if not isinstance(password, str) or not password:
        raise BadRequestError("password is required")
    min_length = settings.password_min_length
    if len(password) < min_length:
        raise BadRequestError(f"Password must be at least {min_length} characters")
    if not password.strip():
        raise BadRequestError("Password must not be blank")
    return password
