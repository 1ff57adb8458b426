"""
Authentication dependencies for FastAPI.
"""

from typing import Optional, Union

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import decode_access_token
from app.auth.permissions import API_KEY_ADMIN, Actor, Role
from app.config import get_settings
from app.database import get_db
from app.errors import AuthenticationError, AuthorizationError
from app.models import Mapper, User

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)

Account = Union[User, Mapper]


async def load_account(db: AsyncSession, actor_id, role: Role) -> Optional[Account]:
    """Fetch the active user or mapper row behind a token."""
    if role == Role.MAPPER:
        stmt = select(Mapper).where(Mapper.id == actor_id, Mapper.is_active == True)
    else:
        stmt = select(User).where(User.id == actor_id, User.is_active == True)
        if role == Role.ADMIN:
            stmt = stmt.where(User.role == Role.ADMIN.value)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def actor_for(account: Account) -> Actor:
    """Build the Actor for a loaded account row."""
    if isinstance(account, Mapper):
        role = Role.MAPPER
    else:
        role = Role(account.role)
    return Actor(id=account.id, email=account.email, role=role, name=account.name)


async def _authenticate(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
) -> tuple[Actor, Account]:
    if credentials is None:
        raise AuthenticationError("No token provided")

    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise AuthenticationError("Invalid or expired token")

    account = await load_account(db, claims["sub"], claims["role"])
    if account is None:
        raise AuthenticationError("Account not found or deactivated")

    return actor_for(account), account


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """
    Get the current authenticated actor.

    Raises 401 if the bearer token is missing, invalid or expired, or if the
    account behind it is gone.
    """
    actor, _ = await _authenticate(credentials, db)
    return actor


async def get_current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> tuple[Actor, Account]:
    """Actor plus its database row, for endpoints that edit the account."""
    return await _authenticate(credentials, db)


async def require_mapper(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Mapper:
    """Authenticated mapper row; 403 for users and admins."""
    actor, account = await _authenticate(credentials, db)
    if not actor.is_mapper:
        raise AuthorizationError("Mapper access required")
    return account


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_admin_api_key: Optional[str] = Header(None, alias="X-Admin-API-Key"),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """
    Verify admin access via either:
    1. Bearer token of a users-table account with role="admin"
    2. Valid X-Admin-API-Key header

    Raises 401 without credentials, 403 for a non-admin or a wrong key.
    """
    settings = get_settings()

    # Method 1: Check API key
    if x_admin_api_key:
        if settings.admin_api_key and x_admin_api_key == settings.admin_api_key:
            return API_KEY_ADMIN
        # Invalid API key - don't fall through, reject immediately
        raise AuthorizationError("Invalid admin API key")

    # Method 2: Check authenticated admin user
    actor, _ = await _authenticate(credentials, db)
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    return actor
