"""
Media endpoints: byte-range video streaming and image serving.
"""

from typing import Optional

from fastapi import APIRouter, Header
from fastapi.responses import FileResponse, StreamingResponse

from app.errors import NotFoundError
from app.services import media_storage

video_router = APIRouter()
image_router = APIRouter()


@video_router.get("/{filename}")
async def stream_video(filename: str, range_header: Optional[str] = Header(None, alias="Range")):
    """
    Serve a stored video.

    Without a Range header the whole file is returned (200). With
    ``Range: bytes=start-end`` (or ``bytes=-N``) only that span is streamed
    back as 206 Partial Content. Unsatisfiable ranges get 416.
    """
    path = media_storage.resolve_media_path(media_storage.VIDEOS_DIR, filename)
    if not path.is_file():
        raise NotFoundError("Video not found")

    size = path.stat().st_size
    content_type = media_storage.content_type_for(path)

    if not range_header:
        return FileResponse(
            path,
            media_type=content_type,
            headers={"Accept-Ranges": "bytes"},
        )

    start, end = media_storage.parse_range(range_header, size)
    return StreamingResponse(
        media_storage.iter_file_range(path, start, end),
        status_code=206,
        media_type=content_type,
        headers={
            "Content-Range": f"bytes {start}-{end}/{size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(end - start + 1),
        },
    )


@image_router.get("/{filename}")
async def serve_image(filename: str):
    path = media_storage.resolve_media_path(media_storage.IMAGES_DIR, filename)
    if not path.is_file():
        raise NotFoundError("Image not found")
    return FileResponse(path, media_type=media_storage.content_type_for(path))
