"""MappingSession model - one continuous mapping drive by a mapper."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class SessionStatus(str, Enum):
    """Session lifecycle. PAUSED is declared but never entered."""
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MappingSession(Base):
    """
    Tracks a mapper's drive from start to finish.

    Distance is accumulated from the stored route while the session is
    ACTIVE; on completion distance, duration and tokens are recomputed on the
    server. At most one ACTIVE session exists per mapper, enforced by a
    partial unique index.
    """

    __tablename__ = "mapping_sessions"
    __table_args__ = (
        Index(
            "uq_mapping_sessions_one_active",
            "mapper_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_mapping_sessions_mapper_start", "mapper_id", "start_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    mapper_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mappers.id"),
        nullable=False,
    )

    # Timing
    start_time: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    end_time: Mapped[datetime | None] = mapped_column(DateTime)

    status: Mapped[str] = mapped_column(
        String(20),
        default=SessionStatus.ACTIVE.value,
        nullable=False,
    )

    # Locations
    start_lat: Mapped[float] = mapped_column(Float, nullable=False)
    start_lon: Mapped[float] = mapped_column(Float, nullable=False)
    current_lat: Mapped[float | None] = mapped_column(Float)
    current_lon: Mapped[float | None] = mapped_column(Float)

    # Totals
    distance: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # km
    duration: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # minutes
    tokens_earned: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # Recorded video
    video_url: Mapped[str | None] = mapped_column(String(500))
    video_key: Mapped[str | None] = mapped_column(String(255))

    grid_confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

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
    mapper: Mapped["Mapper"] = relationship("Mapper", lazy="joined")
    route: Mapped[list["RoutePoint"]] = relationship(
        "RoutePoint",
        back_populates="session",
        lazy="selectin",
        order_by="RoutePoint.seq",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<MappingSession {self.id} - {self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE.value

    @property
    def start_location(self) -> dict:
        return {"lat": self.start_lat, "lon": self.start_lon}

    @property
    def current_location(self) -> dict | None:
        if self.current_lat is None or self.current_lon is None:
            return None
        return {"lat": self.current_lat, "lon": self.current_lon}
