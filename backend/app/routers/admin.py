"""
Admin API endpoints for moderating mappers, events and payouts.

All endpoints require admin authentication:
- Bearer token of a users-table account with role="admin", OR
- Valid `X-Admin-API-Key` header
"""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_admin
from app.auth.permissions import Action, Actor, require
from app.database import get_db
from app.errors import NotFoundError
from app.models import Event, Mapper, MapperStatus
from app.schemas.auth import MapperOut
from app.schemas.event import EventOut, EventStatusChange
from app.schemas.mapper import MapperStatusChange, TransactionOut, TransactionStatusChange
from app.services import event_service, ledger_service

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Dashboard
# =============================================================================

@router.get("/stats")
async def dashboard_stats(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    total_mappers = await db.scalar(select(func.count(Mapper.id)))
    active_mappers = await db.scalar(
        select(func.count(Mapper.id)).where(Mapper.status == MapperStatus.ACTIVE.value)
    )
    total_events = await db.scalar(select(func.count(Event.id)))
    total_earned = await db.scalar(select(func.coalesce(func.sum(Mapper.total_earnings), 0.0)))

    return {
        "success": True,
        "data": {
            "totalMappers": total_mappers or 0,
            "activeMappersCount": active_mappers or 0,
            "totalEvents": total_events or 0,
            "totalEarned": float(total_earned or 0),
        },
    }


# =============================================================================
# Mappers
# =============================================================================

@router.get("/mappers")
async def list_mappers(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every mapper, including deactivated accounts, newest first."""
    result = await db.execute(select(Mapper).order_by(Mapper.created_at.desc()))
    mappers = result.scalars().all()
    return {
        "success": True,
        "count": len(mappers),
        "data": [MapperOut.model_validate(m) for m in mappers],
    }


@router.patch("/mappers/{mapper_id}/status")
async def update_mapper_status(
    mapper_id: uuid.UUID,
    data: MapperStatusChange,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Activate, deactivate, suspend or park a mapper."""
    require(admin, Action.ADMIN_MODERATE)

    mapper = await db.get(Mapper, mapper_id)
    if mapper is None:
        raise NotFoundError("Mapper not found")

    mapper.status = data.status.value
    if data.status == MapperStatus.SUSPENDED:
        mapper.is_live = False
    await db.flush()

    logger.info("Admin %s set mapper %s status to %s", admin.email, mapper.id, data.status.value)
    return {
        "success": True,
        "message": f"Mapper status updated to {data.status.value}",
        "data": MapperOut.model_validate(mapper),
    }


# =============================================================================
# Events
# =============================================================================

@router.get("/events")
async def list_events(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    events = await event_service.list_all_events(db)
    return {
        "success": True,
        "count": len(events),
        "data": [EventOut.build(event) for event in events],
    }


@router.patch("/events/{event_id}/status")
async def update_event_status(
    event_id: uuid.UUID,
    data: EventStatusChange,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Override an event's status (the only way to CLOSE an event)."""
    event = await event_service.override_status(db, admin, event_id, data.status)
    return {
        "success": True,
        "message": f"Event status updated to {data.status.value}",
        "data": EventOut.build(event),
    }


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: uuid.UUID,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await event_service.delete_event(db, admin, event_id)
    return {"success": True, "message": "Event deleted successfully"}


# =============================================================================
# Payouts
# =============================================================================

@router.patch("/transactions/{transaction_id}/status")
async def update_transaction_status(
    transaction_id: uuid.UUID,
    data: TransactionStatusChange,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Settle a pending withdrawal as COMPLETED or FAILED."""
    require(admin, Action.ADMIN_MODERATE)
    transaction = await ledger_service.set_transaction_status(db, transaction_id, data.status)
    return {
        "success": True,
        "message": f"Transaction marked {data.status.value}",
        "data": TransactionOut.model_validate(transaction),
    }
