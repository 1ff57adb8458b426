"""
Pydantic schemas for mapping sessions.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.models import SessionStatus
from app.schemas.common import CamelModel, Location


# Request schemas

class SessionStart(CamelModel):
    start_location: Location


class LocationPing(CamelModel):
    location: Location
    speed: Optional[float] = Field(None, ge=0)
    timestamp: Optional[datetime] = None


class SessionFinish(CamelModel):
    """
    End a session. Distance and duration are accepted for compatibility
    with older clients but the server recomputes both.
    """
    status: SessionStatus
    distance: Optional[float] = None
    duration: Optional[float] = None
    tokens_earned: Optional[float] = None
    end_time: Optional[datetime] = None


# Response schemas

class MapperBrief(CamelModel):
    id: UUID
    name: str
    vehicle_type: str


class RoutePointOut(CamelModel):
    seq: int
    lat: float
    lon: float
    speed: float
    recorded_at: datetime


class SessionOut(CamelModel):
    id: UUID
    mapper_id: UUID
    mapper: Optional[MapperBrief] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str
    start_location: Location
    current_location: Optional[Location] = None
    distance: float
    duration: float
    tokens_earned: float
    video_url: Optional[str] = None
    grid_confidence: float
    created_at: datetime


class SessionDetail(SessionOut):
    route: list[RoutePointOut] = []
