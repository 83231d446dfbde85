"""
Opaque token helpers.

Raw tokens are handed to the client (session) or delivered out of band
(invitation, email verification); only their SHA-256 digest is persisted
and compared.
"""

import hashlib
import secrets


def generate_token() -> str:
    """Generate a random opaque token."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Digest used for storage and lookup of a raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
