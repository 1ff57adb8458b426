"""
Event service - reporting, mapper updates and moderation of safety events.

Lifecycle: an event starts ACTIVE. Mappers move it between ACTIVE, UPDATED
and CLEARED by posting updates (each one appended to the event's update log
and rewarded). Only admins can set CLOSED, and admin overrides leave the
update log untouched.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import Action, Actor, Role, require
from app.config import get_settings
from app.errors import NotFoundError, ValidationError
from app.models import (
    Event,
    EventCategory,
    EventStatus,
    EventUpdate,
    Severity,
    TransactionType,
)
from app.models.event import MAPPER_SETTABLE_STATUSES, SEVERITY_RANK
from app.services import ledger_service, media_storage
from app.utils.geo import bounding_box, cluster_by_grid, distance_km

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_CUSTOM_CATEGORY_LENGTH = 50
MAX_COMMENT_LENGTH = 500

ACTIVE_EVENTS_LIMIT = 100
RECENT_WINDOW = timedelta(hours=24)
DEFAULT_RADIUS_KM = 50.0

SORT_COLUMNS = {
    "createdAt": Event.created_at,
    "severity": case(SEVERITY_RANK, value=Event.severity, else_=0),
    "viewCount": Event.view_count,
}


def _required_text(value: Optional[str], field: str, max_length: int) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


# =============================================================================
# Commands
# =============================================================================

async def create_event(
    db: AsyncSession,
    actor: Actor,
    category: EventCategory,
    title: Optional[str],
    description: Optional[str],
    lat: float,
    lon: float,
    address: Optional[str] = None,
    severity: Optional[Severity] = None,
    custom_category: Optional[str] = None,
    media: Optional[list[UploadFile]] = None,
    media_source_type: str = "UPLOADED",
) -> Event:
    """
    Report a new event.

    Mapper reports are auto-verified and earn the report reward, credited in
    the same database transaction as the insert.

    Raises:
        AuthorizationError: actor is not a user or mapper
        ValidationError: missing fields, OTHER without a custom category,
            too many files, disallowed file type
        PayloadTooLargeError: a file is over the size limit
    """
    require(actor, Action.EVENT_CREATE)
    settings = get_settings()

    title = _required_text(title, "Title", MAX_TITLE_LENGTH)
    description = _required_text(description, "Description", MAX_DESCRIPTION_LENGTH)

    if category == EventCategory.OTHER:
        custom_category = (custom_category or "").strip()
        if not custom_category:
            raise ValidationError('Custom category name is required when category is "OTHER"')
        if len(custom_category) > MAX_CUSTOM_CATEGORY_LENGTH:
            raise ValidationError(
                f"Custom category must be at most {MAX_CUSTOM_CATEGORY_LENGTH} characters"
            )
    else:
        custom_category = None

    uploads = [f for f in media or [] if f.filename]
    if len(uploads) > settings.max_event_media_files:
        raise ValidationError(f"At most {settings.max_event_media_files} media files are allowed")

    stored = await media_storage.save_uploads(uploads, media_source_type)

    try:
        event = Event(
            id=uuid.uuid4(),
            category=category.value,
            custom_category=custom_category,
            title=title,
            description=description,
            lat=lat,
            lon=lon,
            address=address,
            severity=(severity or Severity.MEDIUM).value,
            status=EventStatus.ACTIVE.value,
            media=stored,
            reporter_id=actor.id,
            reporter_name=actor.name or "Unknown",
            reporter_role=actor.role.value,
            verified=actor.role == Role.MAPPER,
            updates=[],
        )
        db.add(event)
        await db.flush()

        if actor.role == Role.MAPPER:
            await ledger_service.award(
                db,
                actor.id,
                settings.event_report_reward,
                TransactionType.EVENT_REPORT,
                f"Event report: {title}",
                event_id=event.id,
                total_events=1,
            )
    except Exception:
        media_storage.delete_media([item["key"] for item in stored])
        raise

    logger.info("Event %s (%s) reported by %s %s", event.id, event.category, actor.role.value, actor.id)
    return event


async def post_update(
    db: AsyncSession,
    actor: Actor,
    event_id: uuid.UUID,
    status: Optional[str],
    comment: Optional[str],
    video: Optional[UploadFile] = None,
    media_source_type: str = "UPLOADED",
) -> Event:
    """
    Append a mapper's field update to an event and mirror its status.

    Raises:
        AuthorizationError: actor is not a mapper
        NotFoundError: no such event
        ValidationError: status not ACTIVE/CLEARED/UPDATED, or a missing or
            overlong comment
    """
    require(actor, Action.EVENT_UPDATE_STATUS)

    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    if not status or not comment or not comment.strip():
        raise ValidationError("Status and comment are required")
    if status not in {s.value for s in MAPPER_SETTABLE_STATUSES}:
        raise ValidationError("Invalid status. Use ACTIVE, CLEARED, or UPDATED")
    comment = _required_text(comment, "Comment", MAX_COMMENT_LENGTH)

    stored = []
    if video is not None and video.filename:
        item = await media_storage.save_upload(video, allowed=("video",))
        item["sourceType"] = media_source_type
        stored.append(item)

    try:
        event.updates.append(
            EventUpdate(
                updater_id=actor.id,
                updater_name=actor.name,
                updater_role=Role.MAPPER.value,
                status=status,
                comment=comment,
                media=stored,
            )
        )
        event.status = status
        await db.flush()

        await ledger_service.award(
            db,
            actor.id,
            get_settings().event_update_reward,
            TransactionType.EVENT_REPORT,
            f"Event update: {event.title} - {status}",
            event_id=event.id,
        )
    except Exception:
        media_storage.delete_media([item["key"] for item in stored])
        raise

    return event


async def override_status(
    db: AsyncSession,
    actor: Actor,
    event_id: uuid.UUID,
    status: EventStatus,
) -> Event:
    """Admin status change. Writes no update entry and awards nothing."""
    require(actor, Action.EVENT_OVERRIDE_STATUS)

    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    previous = event.status
    event.status = status.value
    await db.flush()

    logger.info("Admin %s set event %s status %s -> %s", actor.email, event.id, previous, status.value)
    return event


async def delete_event(db: AsyncSession, actor: Actor, event_id: uuid.UUID) -> None:
    """
    Delete an event, its update log, and every media file they reference.

    Only the reporter or an admin may delete.
    """
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    require(actor, Action.EVENT_DELETE, event)

    keys = event.media_keys
    await db.delete(event)
    await db.flush()

    media_storage.delete_media(keys)
    logger.info("Event %s deleted by %s %s", event_id, actor.role.value, actor.id)


# =============================================================================
# Queries
# =============================================================================

def _bbox_conditions(lat: float, lon: float, radius_km: float) -> list:
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius_km)
    conditions = [Event.lat.between(min_lat, max_lat)]
    # Windows that wrap the antimeridian fall back to the haversine check alone
    if min_lon >= -180.0 and max_lon <= 180.0:
        conditions.append(Event.lon.between(min_lon, max_lon))
    return conditions


def _with_distance(events: list[Event], lat: float, lon: float, radius_km: float) -> list[tuple[Event, float]]:
    """Exact haversine filter; keeps order and returns (event, km) pairs."""
    located = []
    for event in events:
        km = distance_km(lat, lon, event.lat, event.lon)
        if km <= radius_km:
            located.append((event, km))
    return located


async def list_events(
    db: AsyncSession,
    status: Optional[EventStatus] = None,
    category: Optional[EventCategory] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: Optional[float] = None,
    limit: int = 50,
    offset: int = 0,
    sort_by: str = "createdAt",
    order: str = "desc",
) -> tuple[list[tuple[Event, Optional[float]]], int]:
    """
    Filtered, sorted page of events plus the total matching count.

    With lat, lon and radius all given, the radius filter runs before
    pagination, so ``total`` counts in-radius events and a page is only
    short at the end of the results.
    """
    conditions = []
    if status:
        conditions.append(Event.status == status.value)
    if category:
        conditions.append(Event.category == category.value)

    sort_column = SORT_COLUMNS.get(sort_by, Event.created_at)
    ordering = [sort_column.asc() if order == "asc" else sort_column.desc(), Event.id]

    if lat is not None and lon is not None and radius is not None:
        conditions.extend(_bbox_conditions(lat, lon, radius))
        result = await db.execute(select(Event).where(*conditions).order_by(*ordering))
        located = _with_distance(list(result.scalars().all()), lat, lon, radius)
        return located[offset:offset + limit], len(located)

    result = await db.execute(
        select(Event).where(*conditions).order_by(*ordering).offset(offset).limit(limit)
    )
    total = await db.scalar(select(func.count(Event.id)).where(*conditions))
    return [(event, None) for event in result.scalars().all()], int(total or 0)


async def active_events(
    db: AsyncSession,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: float = DEFAULT_RADIUS_KM,
) -> list[tuple[Event, Optional[float]]]:
    """Newest ACTIVE events for the map, at most 100, optionally near a point."""
    conditions = [Event.status == EventStatus.ACTIVE.value]
    stmt = select(Event).order_by(Event.created_at.desc())

    if lat is not None and lon is not None:
        conditions.extend(_bbox_conditions(lat, lon, radius))
        result = await db.execute(stmt.where(*conditions))
        return _with_distance(list(result.scalars().all()), lat, lon, radius)[:ACTIVE_EVENTS_LIMIT]

    result = await db.execute(stmt.where(*conditions).limit(ACTIVE_EVENTS_LIMIT))
    return [(event, None) for event in result.scalars().all()]


async def recent_events(
    db: AsyncSession,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: float = DEFAULT_RADIUS_KM,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> list[tuple[Event, Optional[float]]]:
    """Events reported in the last 24 hours, newest first."""
    since = (now or datetime.utcnow()) - RECENT_WINDOW
    conditions = [Event.created_at >= since]
    stmt = select(Event).order_by(Event.created_at.desc())

    if lat is not None and lon is not None:
        conditions.extend(_bbox_conditions(lat, lon, radius))
        result = await db.execute(stmt.where(*conditions))
        return _with_distance(list(result.scalars().all()), lat, lon, radius)[:limit]

    result = await db.execute(stmt.where(*conditions).limit(limit))
    return [(event, None) for event in result.scalars().all()]


async def event_clusters(
    db: AsyncSession,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    radius: float = DEFAULT_RADIUS_KM,
) -> list[dict]:
    """Grid clusters (~10 km cells) of ACTIVE events."""
    conditions = [Event.status == EventStatus.ACTIVE.value]
    if lat is not None and lon is not None:
        conditions.extend(_bbox_conditions(lat, lon, radius))

    result = await db.execute(select(Event).where(*conditions))
    events = list(result.scalars().all())
    if lat is not None and lon is not None:
        events = [event for event, _ in _with_distance(events, lat, lon, radius)]

    clusters = cluster_by_grid(events, key=lambda e: (e.lat, e.lon))
    return [
        {
            "cell": cluster.cell,
            "center": {"lat": cluster.center_lat, "lon": cluster.center_lon},
            "count": cluster.count,
            "categories": sorted({e.category for e in cluster.items}),
            "maxSeverity": max(
                (e.severity for e in cluster.items),
                key=lambda s: SEVERITY_RANK.get(s, 0),
            ),
            "eventIds": [e.id for e in cluster.items],
        }
        for cluster in clusters
    ]


async def get_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    """Fetch one event, counting the view with a single atomic UPDATE."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(view_count=Event.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Event not found")

    event = await db.get(Event, event_id, populate_existing=True)
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def list_all_events(db: AsyncSession) -> list[Event]:
    """Every event, newest first (admin panel)."""
    result = await db.execute(select(Event).order_by(Event.created_at.desc()))
    return list(result.scalars().all())
