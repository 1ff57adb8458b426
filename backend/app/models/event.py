"""Event model - road-safety incidents reported by users and mappers."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class EventCategory(str, Enum):
    ACCIDENT = "ACCIDENT"
    FLOOD = "FLOOD"
    RAIN = "RAIN"
    TRAFFIC = "TRAFFIC"
    POLICE = "POLICE"
    HAZARD = "HAZARD"
    ROAD_WORK = "ROAD_WORK"
    FIRE = "FIRE"
    PROTEST = "PROTEST"
    SOS = "SOS"
    OTHER = "OTHER"  # requires custom_category


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class EventStatus(str, Enum):
    """
    Event lifecycle.

    ACTIVE -> UPDATED/CLEARED via mapper updates (and back to ACTIVE).
    CLOSED is reachable only through an admin override.
    """
    ACTIVE = "ACTIVE"
    CLEARED = "CLEARED"
    UPDATED = "UPDATED"
    CLOSED = "CLOSED"


# Statuses a mapper may set through an update
MAPPER_SETTABLE_STATUSES = (EventStatus.ACTIVE, EventStatus.CLEARED, EventStatus.UPDATED)

SEVERITY_RANK = {
    Severity.LOW.value: 0,
    Severity.MEDIUM.value: 1,
    Severity.HIGH.value: 2,
    Severity.CRITICAL.value: 3,
}


class Event(Base):
    """
    Reported safety event.

    Media is a JSON list of at most five items:
    ``{"url", "key", "type": "image"|"video", "sourceType": "CAPTURED"|"UPLOADED"}``.
    The status history lives in ``updates``; ``status`` mirrors the latest
    mapper update or admin override.
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_lat_lon", "lat", "lon"),
        Index("ix_events_status_created_at", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    category: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    custom_category: Mapped[str | None] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Location
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str | None] = mapped_column(String(255))

    severity: Mapped[str] = mapped_column(
        String(10),
        default=Severity.MEDIUM.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(10),
        default=EventStatus.ACTIVE.value,
        nullable=False,
    )

    media: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)

    # Reporter (user or mapper id, no FK since it spans two tables)
    reporter_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    reporter_name: Mapped[str] = mapped_column(String(100), nullable=False)
    reporter_role: Mapped[str] = mapped_column(String(10), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)

    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    updates: Mapped[list["EventUpdate"]] = relationship(
        "EventUpdate",
        back_populates="event",
        lazy="selectin",
        order_by="EventUpdate.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Event {self.category} '{self.title}' ({self.status})>"

    @property
    def location(self) -> dict:
        return {"lat": self.lat, "lon": self.lon, "address": self.address}

    @property
    def media_keys(self) -> list[str]:
        """Storage keys of every file referenced by the event and its updates."""
        keys = [m["key"] for m in self.media or [] if m.get("key")]
        for update in self.updates:
            keys.extend(m["key"] for m in update.media or [] if m.get("key"))
        return keys
