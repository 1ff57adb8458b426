"""
Event API endpoints.

Reads are public. Reporting needs any account; posting an update needs a
mapper; deleting needs the reporter or an admin.
"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_actor
from app.auth.permissions import Actor
from app.database import get_db
from app.models import EventCategory, EventStatus, Severity
from app.schemas.common import Pagination
from app.schemas.event import EventOut
from app.services import event_service
from app.utils.geo import time_of_day
from app.utils.timezone import time_ago

router = APIRouter()

SourceType = Literal["CAPTURED", "UPLOADED"]


# =============================================================================
# Reads
# =============================================================================

@router.get("")
async def list_events(
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    category: Optional[EventCategory] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: Optional[float] = Query(None, gt=0),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: Literal["createdAt", "severity", "viewCount"] = Query("createdAt", alias="sortBy"),
    order: Literal["asc", "desc"] = "desc",
    db: AsyncSession = Depends(get_db),
):
    """
    List events with optional filters.

    When lat, lon and radius are all given only events inside the radius are
    returned, and pagination applies to that filtered set.
    """
    located, total = await event_service.list_events(
        db,
        status=status_filter,
        category=category,
        lat=lat,
        lon=lon,
        radius=radius,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        order=order,
    )
    return {
        "success": True,
        "events": [EventOut.build(event, km) for event, km in located],
        "pagination": Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(located) < total,
        ),
    }


@router.get("/active")
async def active_events(
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: float = Query(event_service.DEFAULT_RADIUS_KM, gt=0),
    db: AsyncSession = Depends(get_db),
):
    """ACTIVE events for the live map (newest 100)."""
    located = await event_service.active_events(db, lat=lat, lon=lon, radius=radius)
    return {"success": True, "events": [EventOut.build(event, km) for event, km in located]}


@router.get("/recent")
async def recent_events(
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: float = Query(event_service.DEFAULT_RADIUS_KM, gt=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Timeline of the last 24 hours."""
    located = await event_service.recent_events(db, lat=lat, lon=lon, radius=radius, limit=limit)
    return {
        "success": True,
        "events": [
            EventOut.build(event, km, time_ago=time_ago(event.created_at))
            for event, km in located
        ],
    }


@router.get("/clusters")
async def event_clusters(
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: float = Query(event_service.DEFAULT_RADIUS_KM, gt=0),
    db: AsyncSession = Depends(get_db),
):
    """ACTIVE events grouped into ~10 km grid cells, largest first."""
    clusters = await event_service.event_clusters(db, lat=lat, lon=lon, radius=radius)
    return {"success": True, "clusters": clusters}


@router.get("/{event_id}")
async def get_event(event_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """One event with its update log. Counts as a view."""
    event = await event_service.get_event(db, event_id)
    return {
        "success": True,
        "event": EventOut.build(
            event,
            time_ago=time_ago(event.created_at),
            time_of_day=time_of_day(event.created_at, event.lat, event.lon),
        ),
    }


# =============================================================================
# Commands
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    category: EventCategory = Form(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    lat: float = Form(...),
    lon: float = Form(...),
    address: Optional[str] = Form(None),
    severity: Optional[Severity] = Form(None),
    custom_category: Optional[str] = Form(None, alias="customCategory"),
    media_source_type: SourceType = Form("UPLOADED", alias="mediaSourceType"),
    media: Optional[list[UploadFile]] = File(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Report an event (multipart form, up to five photo/video files in
    ``media``).
    """
    event = await event_service.create_event(
        db,
        actor,
        category=category,
        title=title,
        description=description,
        lat=lat,
        lon=lon,
        address=address,
        severity=severity,
        custom_category=custom_category,
        media=media,
        media_source_type=media_source_type,
    )
    return {"success": True, "event": EventOut.build(event)}


@router.post("/{event_id}/update")
async def post_event_update(
    event_id: uuid.UUID,
    status_value: Optional[str] = Form(None, alias="status"),
    comment: Optional[str] = Form(None),
    media_source_type: SourceType = Form("UPLOADED", alias="mediaSourceType"),
    video: Optional[UploadFile] = File(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Mapper field update: new status, a comment, optional video evidence."""
    event = await event_service.post_update(
        db,
        actor,
        event_id,
        status=status_value,
        comment=comment,
        video=video,
        media_source_type=media_source_type,
    )
    verb = "marked as cleared" if event.status == EventStatus.CLEARED.value else "updated"
    return {
        "success": True,
        "message": f"Event {verb} successfully",
        "event": EventOut.build(event),
    }


@router.delete("/{event_id}")
async def delete_event(
    event_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event and its media. Reporter or admin only."""
    await event_service.delete_event(db, actor, event_id)
    return {"success": True, "message": "Event deleted successfully"}
