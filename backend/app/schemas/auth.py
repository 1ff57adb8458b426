"""
Pydantic schemas for authentication endpoints.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.auth.password import MIN_PASSWORD_LENGTH
from app.models import VehicleType
from app.schemas.common import CamelModel, Location


# Request schemas

class UserSignup(CamelModel):
    """Schema for user registration."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    phone: Optional[str] = Field(None, max_length=30)


class MapperSignup(CamelModel):
    """Schema for mapper registration."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    phone: str = Field(..., min_length=1, max_length=30)
    vehicle_type: VehicleType
    vehicle_number: Optional[str] = Field(None, max_length=30)
    agreed_to_terms: bool = False


class LoginRequest(CamelModel):
    """Schema for user and mapper login."""
    email: EmailStr
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str


class PasswordChange(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)


class AccountDelete(CamelModel):
    password: str


# Response schemas

class UserOut(CamelModel):
    """Schema for user data in responses."""
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None


class MapperOut(CamelModel):
    """Full mapper profile, shown to the mapper and to admins."""
    id: UUID
    name: str
    email: str
    phone: str
    vehicle_type: str
    vehicle_number: Optional[str] = None
    status: str
    is_live: bool
    current_location: Optional[Location] = None
    total_earnings: float
    total_distance: float
    total_duration: float
    total_events: int
    bank_account: Optional[str] = None
    bank_name: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None
