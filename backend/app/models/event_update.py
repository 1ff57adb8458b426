"""EventUpdate model - mapper field reports on an existing event."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class EventUpdate(Base):
    """
    One entry of an event's append-only update log.

    Rows are never edited; they go away only with their event.
    """

    __tablename__ = "event_updates"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    updater_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    updater_name: Mapped[str] = mapped_column(String(100), nullable=False)
    updater_role: Mapped[str] = mapped_column(String(10), nullable=False, default="mapper")

    status: Mapped[str] = mapped_column(String(10), nullable=False)
    comment: Mapped[str] = mapped_column(String(500), nullable=False)
    media: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    event: Mapped["Event"] = relationship("Event", back_populates="updates")

    def __repr__(self) -> str:
        return f"<EventUpdate {self.event_id} -> {self.status}>"
