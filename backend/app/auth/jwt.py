"""
JWT token utilities for authentication.

Access and refresh tokens carry the same claims (``sub``, ``email``,
``role``, ``type``) but are signed with separate secrets, so a refresh token
can never be replayed as an access token.
"""

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from jose import JWTError, jwt

from app.auth.permissions import Actor, Role
from app.config import get_settings

settings = get_settings()

ACCESS = "access"
REFRESH = "refresh"


def _create_token(
    subject_id: UUID,
    email: str,
    role: str,
    token_type: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if token_type == ACCESS:
        secret = settings.jwt_secret_key
        default_minutes = settings.jwt_access_token_expire_minutes
    else:
        secret = settings.jwt_refresh_secret_key
        default_minutes = settings.jwt_refresh_token_expire_minutes

    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=default_minutes))

    to_encode = {
        "sub": str(subject_id),
        "email": email,
        "role": str(Role(role).value),
        "type": token_type,
        "exp": expire,
    }
    return jwt.encode(to_encode, secret, algorithm=settings.jwt_algorithm)


def create_access_token(
    subject_id: UUID,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject_id: The user's or mapper's UUID
        email: Account email, echoed into the claims
        role: "user", "mapper" or "admin"
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    return _create_token(subject_id, email, role, ACCESS, expires_delta)


def create_refresh_token(
    subject_id: UUID,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a long-lived refresh token signed with the refresh secret."""
    return _create_token(subject_id, email, role, REFRESH, expires_delta)


def create_token_pair(actor: Actor) -> dict[str, str]:
    """Issue an access/refresh token pair for an actor."""
    return {
        "accessToken": create_access_token(actor.id, actor.email, actor.role.value),
        "refreshToken": create_refresh_token(actor.id, actor.email, actor.role.value),
    }


def _decode(token: str, secret: str, token_type: str) -> Optional[dict[str, Any]]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if payload.get("type") != token_type or payload.get("sub") is None:
        return None
    try:
        payload["sub"] = UUID(payload["sub"])
        payload["role"] = Role(payload.get("role"))
    except ValueError:
        return None
    return payload


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Claims with ``sub`` as UUID and ``role`` as Role, or None when the
        token is malformed, expired, or not an access token.
    """
    return _decode(token, settings.jwt_secret_key, ACCESS)


def decode_refresh_token(token: str) -> Optional[dict[str, Any]]:
    """Decode and validate a refresh token, None if invalid."""
    return _decode(token, settings.jwt_refresh_secret_key, REFRESH)
