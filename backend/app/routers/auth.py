"""
Authentication API endpoints.

Users and mappers live in separate tables but share one email namespace: an
address registered as either cannot sign up as the other.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import actor_for, get_current_account, load_account
from app.auth.jwt import create_token_pair, decode_refresh_token
from app.auth.password import hash_password, verify_password
from app.auth.permissions import Role
from app.database import get_db
from app.errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from app.models import Mapper, MapperStatus, User, UserRole
from app.schemas.auth import (
    AccountDelete,
    LoginRequest,
    MapperOut,
    MapperSignup,
    PasswordChange,
    RefreshRequest,
    UserOut,
    UserSignup,
)

router = APIRouter()


def _profile(account):
    if isinstance(account, Mapper):
        return MapperOut.model_validate(account)
    return UserOut.model_validate(account)


async def _email_taken(db: AsyncSession, email: str) -> bool:
    for model in (User, Mapper):
        result = await db.execute(select(model.id).where(func.lower(model.email) == email))
        if result.first() is not None:
            return True
    return False


# =============================================================================
# Users
# =============================================================================

@router.post("/user/signup", status_code=status.HTTP_201_CREATED)
async def user_signup(data: UserSignup, db: AsyncSession = Depends(get_db)):
    """Register a regular user and return a token pair."""
    email = data.email.lower()
    if await _email_taken(db, email):
        raise ConflictError("Email already registered")

    user = User(
        name=data.name.strip(),
        email=email,
        password_hash=hash_password(data.password),
        phone=data.phone,
        role=UserRole.USER.value,
        is_active=True,
        created_at=datetime.utcnow(),
    )
    db.add(user)
    await db.flush()

    return {
        "success": True,
        "user": UserOut.model_validate(user),
        **create_token_pair(actor_for(user)),
    }


@router.post("/user/login")
async def user_login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password. Admin accounts log in here too."""
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is disabled")

    user.last_login = datetime.utcnow()
    await db.flush()

    return {
        "success": True,
        "user": UserOut.model_validate(user),
        **create_token_pair(actor_for(user)),
    }


# =============================================================================
# Mappers
# =============================================================================

@router.post("/mapper/signup", status_code=status.HTTP_201_CREATED)
async def mapper_signup(data: MapperSignup, db: AsyncSession = Depends(get_db)):
    """Register a mapper. The terms must be accepted."""
    if not data.agreed_to_terms:
        raise ValidationError("You must agree to the terms and conditions")

    email = data.email.lower()
    if await _email_taken(db, email):
        raise ConflictError("Email already registered")

    mapper = Mapper(
        name=data.name.strip(),
        email=email,
        password_hash=hash_password(data.password),
        phone=data.phone,
        vehicle_type=data.vehicle_type.value,
        vehicle_number=data.vehicle_number,
        agreed_to_terms=True,
        status=MapperStatus.ACTIVE.value,
    )
    db.add(mapper)
    await db.flush()

    return {
        "success": True,
        "mapper": MapperOut.model_validate(mapper),
        **create_token_pair(actor_for(mapper)),
    }


@router.post("/mapper/login")
async def mapper_login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login as a mapper. Suspended mappers are refused."""
    result = await db.execute(select(Mapper).where(Mapper.email == data.email.lower()))
    mapper = result.scalar_one_or_none()

    if not mapper or not verify_password(data.password, mapper.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not mapper.is_active:
        raise AuthenticationError("Account is disabled")
    if mapper.status == MapperStatus.SUSPENDED.value:
        raise AuthorizationError("Your account has been suspended. Contact support.")

    mapper.last_login = datetime.utcnow()
    await db.flush()

    return {
        "success": True,
        "mapper": MapperOut.model_validate(mapper),
        **create_token_pair(actor_for(mapper)),
    }


# =============================================================================
# Tokens and account
# =============================================================================

@router.post("/refresh")
async def refresh(data: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new token pair."""
    claims = decode_refresh_token(data.refresh_token)
    if claims is None:
        raise AuthenticationError("Invalid or expired refresh token")

    account = await load_account(db, claims["sub"], claims["role"])
    if account is None:
        raise AuthenticationError("Account not found or deactivated")

    return {"success": True, **create_token_pair(actor_for(account))}


@router.get("/me")
async def get_me(current=Depends(get_current_account)):
    """Profile of the authenticated user, mapper or admin."""
    actor, account = current
    return {"success": True, "profile": _profile(account), "role": actor.role.value}


@router.put("/password")
async def change_password(
    data: PasswordChange,
    current=Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    _, account = current
    if not verify_password(data.current_password, account.password_hash):
        raise AuthenticationError("Current password is incorrect")

    account.password_hash = hash_password(data.new_password)
    await db.flush()
    return {"success": True, "message": "Password updated successfully"}


@router.delete("/account")
async def delete_account(
    data: AccountDelete,
    current=Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Deactivate the caller's account. Rows are kept; the account can no
    longer log in and mappers drop off the live map.
    """
    actor, account = current
    if not verify_password(data.password, account.password_hash):
        raise AuthenticationError("Password is incorrect")

    account.is_active = False
    if actor.role == Role.MAPPER:
        account.is_live = False
        account.status = MapperStatus.INACTIVE.value
    await db.flush()

    return {"success": True, "message": "Account deleted successfully"}
