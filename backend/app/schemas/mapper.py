"""
Pydantic schemas for mapper profiles and the token ledger.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models import MapperStatus, TransactionStatus, VehicleType
from app.schemas.common import CamelModel, Location


# Request schemas

class ProfileUpdate(CamelModel):
    """All fields optional; only the ones sent are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, min_length=1, max_length=30)
    vehicle_type: Optional[VehicleType] = None
    vehicle_number: Optional[str] = Field(None, max_length=30)
    bank_account: Optional[str] = Field(None, max_length=50)
    bank_name: Optional[str] = Field(None, max_length=100)


class WithdrawalRequest(CamelModel):
    amount: Optional[float] = None
    bank_account: Optional[str] = None
    bank_name: Optional[str] = None


class LiveUpdate(CamelModel):
    lat: Optional[float] = None
    lon: Optional[float] = None
    is_live: Optional[bool] = None


class MapperStatusChange(CamelModel):
    status: MapperStatus


class TransactionStatusChange(CamelModel):
    status: TransactionStatus


# Response schemas

class MapperPublic(CamelModel):
    """Public listing entry; no email or bank details."""
    id: UUID
    name: str
    phone: str
    vehicle_type: str
    status: str
    is_live: bool
    current_location: Optional[Location] = None
    total_earnings: float
    total_distance: float
    total_duration: float
    total_events: int
    created_at: datetime


class TransactionOut(CamelModel):
    id: UUID
    mapper_id: UUID
    session_id: Optional[UUID] = None
    event_id: Optional[UUID] = None
    amount: float
    type: str
    status: str
    description: Optional[str] = None
    bank_account: Optional[str] = None
    bank_name: Optional[str] = None
    reference: Optional[str] = None
    created_at: datetime
    updated_at: datetime
