"""RoutePoint model - GPS samples streamed during a mapping session."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class RoutePoint(Base):
    """
    One GPS sample on a session's route.

    Points are append-only and ordered by ``seq`` (insertion order), not by
    the device timestamp, which can arrive out of order.
    """

    __tablename__ = "route_points"
    __table_args__ = (
        UniqueConstraint("session_id", "seq", name="uq_route_points_session_seq"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("mapping_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    # GPS coordinates
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    speed: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # When the point was recorded (device time)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # When we received it (server time)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    session: Mapped["MappingSession"] = relationship(
        "MappingSession",
        back_populates="route",
    )

    def __repr__(self) -> str:
        return f"<RoutePoint #{self.seq} {self.lat}, {self.lon} @ {self.recorded_at}>"
