"""
Password hashing with bcrypt.
"""

import hashlib

import bcrypt

from app.config import get_settings

MIN_PASSWORD_LENGTH = 6


def _password_bytes(password: str) -> bytes:
    # bcrypt reads at most 72 bytes; pre-hash so long passwords stay distinct
    return hashlib.sha256(password.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    hashed = bcrypt.hashpw(
        _password_bytes(password),
        bcrypt.gensalt(rounds=get_settings().bcrypt_rounds),
    )
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    if not hashed_password or not hashed_password.startswith("$2"):
        return False
    try:
        return bcrypt.checkpw(
            _password_bytes(plain_password),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return False
