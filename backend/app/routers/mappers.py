"""
Mapper API endpoints: public listing, profile, earnings and withdrawals.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import actor_for, require_mapper
from app.auth.permissions import Action, require
from app.database import get_db
from app.models import Mapper, MapperStatus, TransactionStatus, TransactionType
from app.schemas.auth import MapperOut
from app.schemas.common import Pagination
from app.schemas.mapper import (
    LiveUpdate,
    MapperPublic,
    ProfileUpdate,
    TransactionOut,
    WithdrawalRequest,
)
from app.services import ledger_service

router = APIRouter()


@router.get("")
async def list_mappers(
    is_live: Optional[bool] = Query(None, alias="isLive"),
    status_filter: Optional[MapperStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Public mapper directory, live mappers first."""
    conditions = [Mapper.is_active == True]
    if is_live is not None:
        conditions.append(Mapper.is_live == is_live)
    if status_filter:
        conditions.append(Mapper.status == status_filter.value)

    result = await db.execute(
        select(Mapper)
        .where(*conditions)
        .order_by(Mapper.is_live.desc(), Mapper.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    mappers = result.scalars().all()
    total = await db.scalar(select(func.count(Mapper.id)).where(*conditions))

    return {
        "success": True,
        "mappers": [MapperPublic.model_validate(m) for m in mappers],
        "pagination": Pagination(
            total=total or 0,
            limit=limit,
            offset=offset,
            has_more=offset + len(mappers) < (total or 0),
        ),
    }


@router.get("/profile")
async def get_profile(mapper: Mapper = Depends(require_mapper)):
    return {"success": True, "mapper": MapperOut.model_validate(mapper)}


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    """Change name, phone, vehicle or bank details. Omitted fields are kept."""
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if field == "vehicle_type":
            value = value.value
        setattr(mapper, field, value)
    await db.flush()
    return {"success": True, "mapper": MapperOut.model_validate(mapper)}


@router.get("/earnings")
async def get_earnings(
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    """Daily, weekly and all-time earnings with the available balance."""
    summary = await ledger_service.earnings_summary(db, mapper)
    summary["recentTransactions"] = [
        TransactionOut.model_validate(t) for t in summary["recentTransactions"]
    ]
    return {"success": True, "earnings": summary}


@router.post("/withdraw")
async def request_withdrawal(
    data: WithdrawalRequest,
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    require(actor_for(mapper), Action.LEDGER_WITHDRAW)
    transaction = await ledger_service.request_withdrawal(
        db,
        mapper,
        amount=data.amount,
        bank_account=data.bank_account,
        bank_name=data.bank_name,
    )
    amount = abs(transaction.amount)
    return {
        "success": True,
        "message": (
            f"Withdrawal of {amount:g} tokens "
            f"(NGN {ledger_service.to_ngn(amount):,.2f}) initiated successfully"
        ),
        "transaction": TransactionOut.model_validate(transaction),
    }


@router.get("/transactions")
async def list_transactions(
    tx_type: Optional[TransactionType] = Query(None, alias="type"),
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    transactions, total = await ledger_service.list_transactions(
        db, mapper.id, tx_type=tx_type, status=status_filter, limit=limit, offset=offset
    )
    return {
        "success": True,
        "transactions": [TransactionOut.model_validate(t) for t in transactions],
        "pagination": Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(transactions) < total,
        ),
    }


@router.put("/location")
async def update_location(
    data: LiveUpdate,
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    """Live ping outside a session: position and/or the live flag."""
    if data.lat is not None and data.lon is not None:
        mapper.current_lat = data.lat
        mapper.current_lon = data.lon
    if data.is_live is not None:
        mapper.is_live = data.is_live
    await db.flush()

    return {
        "success": True,
        "mapper": {
            "id": mapper.id,
            "isLive": mapper.is_live,
            "currentLocation": mapper.current_location,
        },
    }
