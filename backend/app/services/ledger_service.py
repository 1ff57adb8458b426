"""
Ledger service - token awards, earnings and withdrawals.

Every token a mapper earns is written twice in one database transaction: an
SQL increment of ``mappers.total_earnings`` and a COMPLETED ledger row.
Withdrawals are negative PENDING rows that admins settle later.
"""

import logging
import random
import string
import time
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models import (
    MappingSession,
    Mapper,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from app.utils.timezone import start_of_today, start_of_week

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS = 10

_REFERENCE_ALPHABET = string.digits + string.ascii_lowercase


def withdrawal_reference(now_ms: Optional[int] = None) -> str:
    """Withdrawal reference, ``WD-<epoch ms>-<9 base36 chars>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(random.choices(_REFERENCE_ALPHABET, k=9))
    return f"WD-{now_ms}-{suffix}"


def to_ngn(tokens: float) -> float:
    return tokens * get_settings().token_value_ngn


async def increment_totals(db: AsyncSession, mapper_id: uuid.UUID, **increments: float) -> None:
    """
    Add to a mapper's cumulative columns with a single UPDATE.

    Keyword names are Mapper column names (``total_earnings``,
    ``total_distance``, ``total_duration``, ``total_events``).
    """
    if not increments:
        return
    values = {name: getattr(Mapper, name) + amount for name, amount in increments.items()}
    await db.execute(
        update(Mapper)
        .where(Mapper.id == mapper_id)
        .values(**values)
        .execution_options(synchronize_session="evaluate")
    )


async def award(
    db: AsyncSession,
    mapper_id: uuid.UUID,
    amount: float,
    tx_type: TransactionType,
    description: str,
    session_id: Optional[uuid.UUID] = None,
    event_id: Optional[uuid.UUID] = None,
    **extra_totals: float,
) -> Transaction:
    """
    Credit tokens to a mapper and record the ledger entry.

    The increment and the insert are flushed on the caller's session, so they
    commit or roll back together with whatever else the request wrote.

    Args:
        db: Database session
        mapper_id: Mapper to credit
        amount: Positive token amount
        tx_type: Any type except WITHDRAWAL
        description: Human readable line for the ledger
        session_id: Mapping session that earned it, if any
        event_id: Event that earned it, if any
        **extra_totals: Other cumulative columns to bump in the same UPDATE

    Returns:
        The new COMPLETED transaction
    """
    if amount <= 0:
        raise ValidationError("Award amount must be positive")
    if tx_type == TransactionType.WITHDRAWAL:
        raise ValidationError("Withdrawals are not awards")

    await increment_totals(db, mapper_id, total_earnings=amount, **extra_totals)

    transaction = Transaction(
        mapper_id=mapper_id,
        session_id=session_id,
        event_id=event_id,
        amount=amount,
        type=tx_type.value,
        status=TransactionStatus.COMPLETED.value,
        description=description,
    )
    db.add(transaction)
    await db.flush()

    logger.info("Awarded %.2f tokens (%s) to mapper %s", amount, tx_type.value, mapper_id)
    return transaction


async def _sum(db: AsyncSession, *conditions) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0.0)).where(*conditions)
    )
    return float(result.scalar_one())


async def _earned_since(db: AsyncSession, mapper_id: uuid.UUID, since: datetime) -> float:
    return await _sum(
        db,
        Transaction.mapper_id == mapper_id,
        Transaction.status == TransactionStatus.COMPLETED.value,
        Transaction.type != TransactionType.WITHDRAWAL.value,
        Transaction.created_at >= since,
    )


async def _sessions_since(db: AsyncSession, mapper_id: uuid.UUID, since: datetime) -> tuple[int, float]:
    result = await db.execute(
        select(
            func.count(MappingSession.id),
            func.coalesce(func.sum(MappingSession.distance), 0.0),
        ).where(
            MappingSession.mapper_id == mapper_id,
            MappingSession.start_time >= since,
        )
    )
    count, distance = result.one()
    return int(count), float(distance)


async def withdrawn_total(
    db: AsyncSession,
    mapper_id: uuid.UUID,
    statuses: tuple[TransactionStatus, ...] = (TransactionStatus.PENDING, TransactionStatus.COMPLETED),
) -> float:
    """Absolute value of the mapper's withdrawals in the given statuses."""
    total = await _sum(
        db,
        Transaction.mapper_id == mapper_id,
        Transaction.type == TransactionType.WITHDRAWAL.value,
        Transaction.status.in_([s.value for s in statuses]),
    )
    return abs(total)


def lock_mapper_query(mapper_id: uuid.UUID):
    """SELECT ... FOR UPDATE on the mapper row, overwriting any loaded copy."""
    return (
        select(Mapper)
        .where(Mapper.id == mapper_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


async def available_balance(db: AsyncSession, mapper: Mapper) -> float:
    """Total earnings minus every pending or completed withdrawal."""
    return mapper.total_earnings - await withdrawn_total(db, mapper.id)


async def recent_transactions(
    db: AsyncSession,
    mapper_id: uuid.UUID,
    limit: int = RECENT_TRANSACTIONS,
) -> list[Transaction]:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.mapper_id == mapper_id)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def earnings_summary(
    db: AsyncSession,
    mapper: Mapper,
    now: Optional[datetime] = None,
) -> dict:
    """
    Daily, weekly and all-time earnings for a mapper.

    Day and week boundaries are local midnight (week starts Monday) in the
    configured server timezone. Only COMPLETED non-withdrawal rows count as
    earnings; ``balance`` subtracts pending and completed withdrawals alike.
    """
    today = start_of_today(now)
    week = start_of_week(now)

    daily = await _earned_since(db, mapper.id, today)
    weekly = await _earned_since(db, mapper.id, week)
    daily_sessions, daily_distance = await _sessions_since(db, mapper.id, today)
    weekly_sessions, weekly_distance = await _sessions_since(db, mapper.id, week)

    paid = await withdrawn_total(db, mapper.id, (TransactionStatus.COMPLETED,))
    balance = await available_balance(db, mapper)

    return {
        "daily": {
            "amount": daily,
            "amountNGN": to_ngn(daily),
            "sessions": daily_sessions,
            "distance": daily_distance,
        },
        "weekly": {
            "amount": weekly,
            "amountNGN": to_ngn(weekly),
            "sessions": weekly_sessions,
            "distance": weekly_distance,
        },
        "total": {
            "amount": mapper.total_earnings,
            "amountNGN": to_ngn(mapper.total_earnings),
            "paid": paid,
            "paidNGN": to_ngn(paid),
            "balance": balance,
            "balanceNGN": to_ngn(balance),
        },
        "recentTransactions": await recent_transactions(db, mapper.id),
    }


async def request_withdrawal(
    db: AsyncSession,
    mapper: Mapper,
    amount: Optional[float],
    bank_account: Optional[str],
    bank_name: Optional[str] = None,
) -> Transaction:
    """
    Open a PENDING withdrawal for ``amount`` tokens.

    Raises:
        ValidationError: non-positive amount, no bank account, or more than
            the available balance
    """
    if amount is None or amount <= 0:
        raise ValidationError("Invalid withdrawal amount")
    if not bank_account:
        raise ValidationError("Bank account is required")

    # Serialise concurrent withdrawals on the mapper row; also reloads total_earnings
    await db.execute(lock_mapper_query(mapper.id))
    balance = await available_balance(db, mapper)
    if amount > balance:
        raise ValidationError(f"Insufficient balance. Available: {balance:.2f} tokens")

    transaction = Transaction(
        mapper_id=mapper.id,
        amount=-amount,
        type=TransactionType.WITHDRAWAL.value,
        status=TransactionStatus.PENDING.value,
        description=f"Withdrawal of {amount} tokens to {bank_account}",
        bank_account=bank_account,
        bank_name=bank_name or "Unknown",
        reference=withdrawal_reference(),
    )
    db.add(transaction)

    mapper.bank_account = bank_account
    if bank_name:
        mapper.bank_name = bank_name

    await db.flush()
    logger.info(
        "Withdrawal %s of %.2f tokens requested by mapper %s",
        transaction.reference, amount, mapper.id,
    )
    return transaction


async def list_transactions(
    db: AsyncSession,
    mapper_id: uuid.UUID,
    tx_type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Transaction], int]:
    """A page of a mapper's ledger, newest first, plus the total count."""
    conditions = [Transaction.mapper_id == mapper_id]
    if tx_type:
        conditions.append(Transaction.type == tx_type.value)
    if status:
        conditions.append(Transaction.status == status.value)

    result = await db.execute(
        select(Transaction)
        .where(*conditions)
        .order_by(Transaction.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    total = await db.scalar(select(func.count(Transaction.id)).where(*conditions))
    return list(result.scalars().all()), int(total or 0)


async def set_transaction_status(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    status: TransactionStatus,
) -> Transaction:
    """
    Settle a PENDING transaction as COMPLETED or FAILED.

    Raises:
        NotFoundError: unknown transaction
        ConflictError: the row is not PENDING or the target is not final
    """
    transaction = await db.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction not found")

    if status not in (TransactionStatus.COMPLETED, TransactionStatus.FAILED):
        raise ConflictError("Transactions can only be settled as COMPLETED or FAILED")
    if transaction.status != TransactionStatus.PENDING.value:
        raise ConflictError(f"Transaction is already {transaction.status}")

    transaction.status = status.value
    await db.flush()
    logger.info("Transaction %s marked %s", transaction.id, status.value)
    return transaction
