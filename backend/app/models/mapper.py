"""Mapper model - gig drivers who stream their routes and earn tokens."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class VehicleType(str, Enum):
    """Vehicles a mapper can drive."""
    TAXI_MAX_RIDES = "TAXI_MAX_RIDES"
    OKADA_MOTORCYCLE = "OKADA_MOTORCYCLE"
    DANFO_BUS = "DANFO_BUS"
    BOLT_UBER = "BOLT_UBER"
    BOX_TRUCK = "BOX_TRUCK"
    PRIVATE_CAR = "PRIVATE_CAR"
    KEKE_NAPEP = "KEKE_NAPEP"
    OTHER = "OTHER"


class MapperStatus(str, Enum):
    """Moderation status, set by admins."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    PENDING = "PENDING"


class Mapper(Base):
    """
    Mapper account.

    Cumulative totals (earnings, distance, duration, events) only grow through
    award operations in the ledger service. Accounts are soft-deleted via
    is_active and never removed.
    """

    __tablename__ = "mappers"
    __table_args__ = (
        Index("ix_mappers_status_is_live", "status", "is_live"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)

    # Vehicle
    vehicle_type: Mapped[str] = mapped_column(String(30), nullable=False)
    vehicle_number: Mapped[str | None] = mapped_column(String(30))

    status: Mapped[str] = mapped_column(
        String(20),
        default=MapperStatus.ACTIVE.value,
        nullable=False,
    )

    # Live tracking
    is_live: Mapped[bool] = mapped_column(Boolean, default=False)
    current_lat: Mapped[float | None] = mapped_column(Float)
    current_lon: Mapped[float | None] = mapped_column(Float)

    # Cumulative totals
    total_earnings: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_distance: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # km
    total_duration: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # minutes
    total_events: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    agreed_to_terms: Mapped[bool] = mapped_column(Boolean, default=False)

    # Payout details
    bank_account: Mapped[str | None] = mapped_column(String(50))
    bank_name: Mapped[str | None] = mapped_column(String(100))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
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
    last_login: Mapped[datetime | None] = mapped_column(DateTime)

    def __repr__(self) -> str:
        return f"<Mapper {self.email} ({self.status})>"

    @property
    def current_location(self) -> dict | None:
        if self.current_lat is None or self.current_lon is None:
            return None
        return {"lat": self.current_lat, "lon": self.current_lon}
