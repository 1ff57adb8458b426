"""
Pydantic schemas for events and their update log.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from app.models import EventStatus
from app.schemas.common import CamelModel, LocationOut, MediaItem


class EventUpdateOut(CamelModel):
    id: UUID
    updater_id: UUID
    updater_name: str
    updater_role: str
    status: str
    comment: str
    media: list[MediaItem] = []
    created_at: datetime


class EventOut(CamelModel):
    id: UUID
    category: str
    custom_category: Optional[str] = None
    title: str
    description: str
    location: LocationOut
    severity: str
    status: str
    media: list[MediaItem] = []
    reporter_id: UUID
    reporter_name: str
    reporter_role: str
    verified: bool
    view_count: int
    created_at: datetime
    updated_at: datetime
    updates: list[EventUpdateOut] = []

    # Computed per request
    updates_count: int = 0
    distance: Optional[float] = None  # km from the query point
    time_ago: Optional[str] = None
    time_of_day: Optional[str] = None

    @classmethod
    def build(cls, event, distance: Optional[float] = None, **extra) -> "EventOut":
        out = cls.model_validate(event)
        out.updates_count = len(out.updates)
        out.distance = round(distance, 3) if distance is not None else None
        for name, value in extra.items():
            setattr(out, name, value)
        return out


class EventStatusChange(CamelModel):
    """Admin override body."""
    status: EventStatus
