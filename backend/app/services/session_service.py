"""
Mapping session service - start, track and finish a mapper's drive.

The server is authoritative for everything a session pays out: distance is
measured from the stored route, duration from the start and end times, and
the token claim is capped at ``duration * tokens_per_minute``.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import Action, Actor, require
from app.config import get_settings
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models import (
    MappingSession,
    Mapper,
    RoutePoint,
    SessionStatus,
    TransactionType,
)
from app.services import ledger_service, media_storage
from app.utils.geo import distance_km, route_distance_km
from app.utils.timezone import to_utc

logger = logging.getLogger(__name__)

ACTIVE_SESSION_MESSAGE = "You already have an active session. Please end it before starting a new one."

# Grid confidence heuristic
GRID_CONFIDENCE_BASE = 50.0
GRID_CONFIDENCE_PER_MAPPER = 0.5
GRID_CONFIDENCE_PER_SESSION = 5.0
GRID_CONFIDENCE_MAX = 98.5


def grid_confidence(total_mappers: int, active_sessions: int) -> float:
    return min(
        GRID_CONFIDENCE_MAX,
        GRID_CONFIDENCE_BASE
        + total_mappers * GRID_CONFIDENCE_PER_MAPPER
        + active_sessions * GRID_CONFIDENCE_PER_SESSION,
    )


async def _active_session_id(db: AsyncSession, mapper_id: uuid.UUID) -> Optional[uuid.UUID]:
    return await db.scalar(
        select(MappingSession.id).where(
            MappingSession.mapper_id == mapper_id,
            MappingSession.status == SessionStatus.ACTIVE.value,
        )
    )


async def start_session(db: AsyncSession, mapper: Mapper, actor: Actor, lat: float, lon: float) -> MappingSession:
    """
    Open a new ACTIVE session at the start location.

    Raises:
        ConflictError: the mapper already has an ACTIVE session; the error
            carries ``activeSessionId``
    """
    require(actor, Action.SESSION_START)

    existing = await _active_session_id(db, mapper.id)
    if existing is not None:
        raise ConflictError(ACTIVE_SESSION_MESSAGE, extra={"activeSessionId": existing})

    now = datetime.utcnow()
    session = MappingSession(
        id=uuid.uuid4(),
        mapper=mapper,
        start_time=now,
        status=SessionStatus.ACTIVE.value,
        start_lat=lat,
        start_lon=lon,
        current_lat=lat,
        current_lon=lon,
        route=[RoutePoint(seq=0, lat=lat, lon=lon, speed=0.0, recorded_at=now)],
    )

    # A concurrent start fails here on the partial unique index (IntegrityError -> 409)
    db.add(session)
    await db.flush()

    mapper.is_live = True
    mapper.current_lat = lat
    mapper.current_lon = lon
    await db.flush()

    logger.info("Mapper %s started session %s", mapper.id, session.id)
    return session


async def _own_session(db: AsyncSession, mapper_id: uuid.UUID, session_id: uuid.UUID) -> Optional[MappingSession]:
    result = await db.execute(
        select(MappingSession).where(
            MappingSession.id == session_id,
            MappingSession.mapper_id == mapper_id,
        )
    )
    return result.scalar_one_or_none()


async def record_location(
    db: AsyncSession,
    mapper: Mapper,
    actor: Actor,
    session_id: uuid.UUID,
    lat: float,
    lon: float,
    speed: Optional[float] = None,
    timestamp: Optional[datetime] = None,
) -> MappingSession:
    """
    Append one GPS sample to an ACTIVE session.

    The haversine hop from the previous point is added to the running
    distance, and the current location is mirrored onto the mapper.

    Raises:
        NotFoundError: the session is not the caller's or is not ACTIVE
    """
    session = await _own_session(db, mapper.id, session_id)
    if session is None or not session.is_active:
        raise NotFoundError("Active session not found")
    require(actor, Action.SESSION_TRACK, session)

    if timestamp is None:
        timestamp = datetime.utcnow()
    elif timestamp.tzinfo is not None:
        timestamp = to_utc(timestamp)

    previous = session.route[-1] if session.route else None

    if previous is not None:
        session.distance += distance_km(previous.lat, previous.lon, lat, lon)
        seq = previous.seq + 1
    else:
        seq = 0

    point = RoutePoint(
        seq=seq,
        lat=lat,
        lon=lon,
        speed=speed or 0.0,
        recorded_at=timestamp,
    )
    session.route.append(point)

    session.current_lat = lat
    session.current_lon = lon
    mapper.current_lat = lat
    mapper.current_lon = lon
    await db.flush()
    return session


def _clamp_end_time(start: datetime, end: Optional[datetime], now: datetime) -> datetime:
    if end is None:
        return now
    if end.tzinfo is not None:
        end = to_utc(end)
    return min(max(end, start), now)


async def finish_session(
    db: AsyncSession,
    mapper: Mapper,
    actor: Actor,
    session_id: uuid.UUID,
    status: SessionStatus,
    tokens_earned: Optional[float] = None,
    end_time: Optional[datetime] = None,
) -> MappingSession:
    """
    Move an ACTIVE session to COMPLETED or CANCELLED.

    On COMPLETED the payout is recomputed here: distance from the stored
    route, duration from start to the (clamped) end time, and tokens clamped
    to ``[0, duration * tokens_per_minute]``, defaulting to the ceiling. The
    mapper's totals and the MAPPING ledger entry are written together.
    Cancelled sessions pay nothing.

    Raises:
        NotFoundError: no such session for this mapper
        ValidationError: status other than COMPLETED or CANCELLED
        ConflictError: the session already ended
    """
    if status not in (SessionStatus.COMPLETED, SessionStatus.CANCELLED):
        raise ValidationError("Status must be COMPLETED or CANCELLED")

    session = await _own_session(db, mapper.id, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    require(actor, Action.SESSION_FINISH, session)

    if not session.is_active:
        raise ConflictError(f"Session is already {session.status}")

    now = datetime.utcnow()
    session.end_time = _clamp_end_time(session.start_time, end_time, now)
    session.status = status.value
    mapper.is_live = False

    if status == SessionStatus.CANCELLED:
        await db.flush()
        logger.info("Mapper %s cancelled session %s", mapper.id, session.id)
        return session

    distance = route_distance_km([(p.lat, p.lon) for p in session.route])
    duration = (session.end_time - session.start_time).total_seconds() / 60
    ceiling = duration * get_settings().tokens_per_minute
    tokens = ceiling if tokens_earned is None else min(max(tokens_earned, 0.0), ceiling)

    session.distance = distance
    session.duration = duration
    session.tokens_earned = tokens
    await db.flush()

    totals = {"total_distance": distance, "total_duration": duration}
    if tokens > 0:
        await ledger_service.award(
            db,
            mapper.id,
            tokens,
            TransactionType.MAPPING,
            f"Mapping session: {distance:.2f}km, {duration:.0f}min",
            session_id=session.id,
            **totals,
        )
    else:
        await ledger_service.increment_totals(db, mapper.id, **totals)

    logger.info(
        "Mapper %s completed session %s: %.2f km, %.1f min, %.2f tokens",
        mapper.id, session.id, distance, duration, tokens,
    )
    return session


async def attach_video(
    db: AsyncSession,
    mapper: Mapper,
    session_id: uuid.UUID,
    video: UploadFile,
) -> MappingSession:
    """Store a session recording, replacing (and unlinking) any previous one."""
    if video is None or not video.filename:
        raise ValidationError("No video file provided")

    session = await _own_session(db, mapper.id, session_id)
    if session is None:
        raise NotFoundError("Session not found")

    stored = await media_storage.save_upload(video, allowed=("video",))
    old_key = session.video_key

    session.video_url = stored["url"]
    session.video_key = stored["key"]
    await db.flush()

    if old_key:
        media_storage.delete_media([old_key])
    return session


async def list_sessions(
    db: AsyncSession,
    mapper_id: Optional[uuid.UUID] = None,
    status: Optional[SessionStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MappingSession], int]:
    """Sessions newest first, with the total count for pagination."""
    conditions = []
    if mapper_id:
        conditions.append(MappingSession.mapper_id == mapper_id)
    if status:
        conditions.append(MappingSession.status == status.value)

    result = await db.execute(
        select(MappingSession)
        .where(*conditions)
        .order_by(MappingSession.start_time.desc())
        .offset(offset)
        .limit(limit)
    )
    total = await db.scalar(select(func.count(MappingSession.id)).where(*conditions))
    return list(result.unique().scalars().all()), int(total or 0)


async def get_session(db: AsyncSession, session_id: uuid.UUID) -> MappingSession:
    session = await db.get(MappingSession, session_id)
    if session is None:
        raise NotFoundError("Session not found")
    return session


async def network_stats(db: AsyncSession) -> dict:
    """Public network-wide counters for the landing page."""
    total_mappers = await db.scalar(
        select(func.count(Mapper.id)).where(Mapper.is_active == True)
    )
    active_mappers = await db.scalar(
        select(func.count(Mapper.id)).where(Mapper.is_active == True, Mapper.is_live == True)
    )
    active_sessions = await db.scalar(
        select(func.count(MappingSession.id)).where(
            MappingSession.status == SessionStatus.ACTIVE.value
        )
    )
    result = await db.execute(
        select(
            func.coalesce(func.sum(Mapper.total_earnings), 0.0),
            func.coalesce(func.sum(Mapper.total_distance), 0.0),
        ).where(Mapper.is_active == True)
    )
    total_earned, total_distance = result.one()

    return {
        "totalMappers": int(total_mappers or 0),
        "activeMappers": int(active_mappers or 0),
        "verifiedStreams": int(active_sessions or 0),
        "totalPaid": ledger_service.to_ngn(float(total_earned)),
        "totalDistance": float(total_distance),
        "gridConfidence": grid_confidence(int(total_mappers or 0), int(active_sessions or 0)),
    }
