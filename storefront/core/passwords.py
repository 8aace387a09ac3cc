"""
Password hashing for client and staff accounts (bcrypt).

bcrypt is CPU bound; async callers run these functions through
``fastapi.concurrency.run_in_threadpool`` so a hash never stalls the event loop.
"""

import logging
import secrets
from functools import lru_cache

import bcrypt

from .config import get_settings
from .errors import ValidationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        ValidationError: password longer than bcrypt accepts
    """
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash. Malformed hashes never match."""
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError as e:
        logger.error(f"Password verification failed: {e}")
        return False


@lru_cache
def dummy_password_hash() -> str:
    """
    A hash no submitted password matches.

    Logins for unknown accounts verify against it, so they cost the same
    bcrypt work as logins for real ones.
    """
    return hash_password(secrets.token_urlsafe(32))
