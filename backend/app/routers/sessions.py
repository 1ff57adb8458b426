"""
Mapping session API endpoints.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import actor_for, require_mapper
from app.database import get_db
from app.models import Mapper, SessionStatus
from app.schemas.common import Pagination
from app.schemas.session import (
    LocationPing,
    SessionDetail,
    SessionFinish,
    SessionOut,
    SessionStart,
)
from app.services import session_service

router = APIRouter()


@router.get("")
async def list_sessions(
    mapper_id: Optional[uuid.UUID] = Query(None, alias="mapperId"),
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    sessions, total = await session_service.list_sessions(
        db, mapper_id=mapper_id, status=status_filter, limit=limit, offset=offset
    )
    return {
        "success": True,
        "sessions": [SessionOut.model_validate(s) for s in sessions],
        "pagination": Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(sessions) < total,
        ),
    }


@router.get("/network-stats")
async def network_stats(db: AsyncSession = Depends(get_db)):
    """Network-wide counters. Also mounted at /api/network-stats."""
    return {"success": True, "stats": await session_service.network_stats(db)}


@router.get("/{session_id}")
async def get_session(session_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """One session with its full route."""
    session = await session_service.get_session(db, session_id)
    return {"success": True, "session": SessionDetail.model_validate(session)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_session(
    data: SessionStart,
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    """
    Start mapping. Answers 409 with ``activeSessionId`` if the mapper is
    already in a session.
    """
    session = await session_service.start_session(
        db,
        mapper,
        actor_for(mapper),
        lat=data.start_location.lat,
        lon=data.start_location.lon,
    )
    return {"success": True, "session": SessionOut.model_validate(session)}


@router.post("/{session_id}/location")
async def record_location(
    session_id: uuid.UUID,
    data: LocationPing,
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    """Live GPS ping from the mapper's device."""
    session = await session_service.record_location(
        db,
        mapper,
        actor_for(mapper),
        session_id,
        lat=data.location.lat,
        lon=data.location.lon,
        speed=data.speed,
        timestamp=data.timestamp,
    )
    return {
        "success": True,
        "message": "Location updated",
        "distance": session.distance,
    }


@router.patch("/{session_id}")
async def finish_session(
    session_id: uuid.UUID,
    data: SessionFinish,
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    """
    End a session as COMPLETED or CANCELLED.

    Distance and duration in the body are ignored; tokensEarned is capped
    by the server.
    """
    session = await session_service.finish_session(
        db,
        mapper,
        actor_for(mapper),
        session_id,
        status=data.status,
        tokens_earned=data.tokens_earned,
        end_time=data.end_time,
    )
    return {"success": True, "session": SessionOut.model_validate(session)}


@router.post("/{session_id}/upload")
async def upload_session_video(
    session_id: uuid.UUID,
    video: Optional[UploadFile] = File(None),
    mapper: Mapper = Depends(require_mapper),
    db: AsyncSession = Depends(get_db),
):
    """Attach the session recording, replacing any earlier upload."""
    session = await session_service.attach_video(db, mapper, session_id, video)
    return {
        "success": True,
        "message": "Video uploaded successfully",
        "videoUrl": session.video_url,
    }
