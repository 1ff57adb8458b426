"""Transaction model - the append-only token ledger."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class TransactionType(str, Enum):
    MAPPING = "MAPPING"
    BONUS = "BONUS"
    REFERRAL = "REFERRAL"
    WITHDRAWAL = "WITHDRAWAL"
    EVENT_REPORT = "EVENT_REPORT"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Transaction(Base):
    """
    Ledger entry for a mapper.

    Amounts are signed: WITHDRAWAL rows are negative, every other type is
    positive. Rows are never edited except for status, which may only move
    from PENDING to COMPLETED or FAILED.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_mapper_created_at", "mapper_id", "created_at"),
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
    session_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("mapping_sessions.id", ondelete="SET NULL"),
    )
    event_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("events.id", ondelete="SET NULL"),
    )

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=TransactionStatus.PENDING.value,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(String(255))

    # Withdrawal details
    bank_account: Mapped[str | None] = mapped_column(String(50))
    bank_name: Mapped[str | None] = mapped_column(String(100))
    reference: Mapped[str | None] = mapped_column(String(64), unique=True)

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

    def __repr__(self) -> str:
        return f"<Transaction {self.type} {self.amount} ({self.status})>"
