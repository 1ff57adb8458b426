"""
Media storage - uploaded videos and images on the local disk.

Files live under ``upload_dir`` in ``videos/`` and ``images/`` with random
uuid4 names. A stored file is addressed by its key, ``"<dir>/<filename>"``,
which is what events and sessions keep in the database. Videos are served
with HTTP byte-range support so players can seek.
"""

import logging
import re
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from app.config import get_settings
from app.errors import (
    InternalError,
    NotFoundError,
    PayloadTooLargeError,
    RangeNotSatisfiableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

VIDEOS_DIR = "videos"
IMAGES_DIR = "images"
THUMBNAILS_DIR = "thumbnails"

VIDEO_MIME_TYPES = {
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
    "video/mpeg",
}

IMAGE_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/heic",
}

DEFAULT_EXTENSIONS = {VIDEOS_DIR: ".mp4", IMAGES_DIR: ".jpg"}

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".mpeg": "video/mpeg",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".heic": "image/heic",
}

CHUNK_SIZE = 64 * 1024

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$")


def upload_root() -> Path:
    return Path(get_settings().upload_dir).resolve()


def ensure_upload_dirs() -> None:
    """Create the upload directory tree if it is missing."""
    root = upload_root()
    for name in (VIDEOS_DIR, IMAGES_DIR, THUMBNAILS_DIR):
        (root / name).mkdir(parents=True, exist_ok=True)


def media_kind(content_type: Optional[str]) -> Optional[str]:
    """'video', 'image', or None for a MIME type we do not store."""
    if content_type in VIDEO_MIME_TYPES:
        return "video"
    if content_type in IMAGE_MIME_TYPES:
        return "image"
    return None


def media_url(key: str) -> str:
    """Public URL for a stored file key."""
    directory, filename = key.split("/", 1)
    if directory == VIDEOS_DIR:
        return f"/api/videos/{filename}"
    return f"/api/media/images/{filename}"


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


def resolve_media_path(directory: str, filename: str) -> Path:
    """
    Path of a stored file, refusing anything that escapes its directory.

    Raises:
        NotFoundError: for traversal attempts and names we never issue
    """
    if not filename or filename != Path(filename).name or filename.startswith("."):
        raise NotFoundError("File not found")

    base = (upload_root() / directory).resolve()
    path = (base / filename).resolve()
    if path.parent != base:
        raise NotFoundError("File not found")
    return path


def _discard(path: Path) -> None:
    if path.exists():
        path.unlink()


async def save_upload(upload: UploadFile, allowed: tuple[str, ...] = ("video", "image")) -> dict:
    """
    Stream an upload to disk under a fresh uuid4 name.

    Args:
        upload: Incoming multipart file
        allowed: Media kinds accepted for this field

    Returns:
        ``{"url", "key", "type"}`` for the stored file

    Raises:
        ValidationError: disallowed MIME type
        PayloadTooLargeError: file exceeds the configured size limit
        InternalError: the file could not be written to disk
    """
    kind = media_kind(upload.content_type)
    if kind is None or kind not in allowed:
        raise ValidationError(
            f"Invalid file type: {upload.content_type}. "
            f"Allowed: {', '.join(allowed)} files"
        )

    directory = VIDEOS_DIR if kind == "video" else IMAGES_DIR
    extension = Path(upload.filename or "").suffix.lower() or DEFAULT_EXTENSIONS[directory]
    filename = f"{uuid.uuid4()}{extension}"

    target_dir = upload_root() / directory
    target = target_dir / filename

    max_bytes = get_settings().max_upload_size_bytes
    written = 0
    try:
        await run_in_threadpool(target_dir.mkdir, parents=True, exist_ok=True)
        out = await run_in_threadpool(open, target, "wb")
        try:
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise PayloadTooLargeError(
                        f"File too large. Maximum size is {get_settings().max_upload_size_mb}MB"
                    )
                await run_in_threadpool(out.write, chunk)
        finally:
            await run_in_threadpool(out.close)
    except OSError as exc:
        _discard(target)
        logger.error("Could not store upload %s: %s", target, exc)
        raise InternalError("Failed to store upload") from exc
    except Exception:
        _discard(target)
        raise

    key = f"{directory}/{filename}"
    logger.info("Stored %s upload %s (%d bytes)", kind, key, written)
    return {"url": media_url(key), "key": key, "type": kind}


async def save_uploads(uploads: list[UploadFile], source_type: str = "UPLOADED") -> list[dict]:
    """
    Store several uploads; on any failure the files already written are removed.
    """
    stored: list[dict] = []
    try:
        for upload in uploads:
            item = await save_upload(upload)
            item["sourceType"] = source_type
            stored.append(item)
    except Exception:
        delete_media([item["key"] for item in stored])
        raise
    return stored


def delete_media(keys: list[str]) -> int:
    """
    Unlink stored files by key. Missing files are skipped.

    Returns:
        Number of files actually removed
    """
    removed = 0
    for key in keys:
        directory, _, filename = key.partition("/")
        if directory not in (VIDEOS_DIR, IMAGES_DIR) or not filename:
            logger.warning("Ignoring unknown media key %r", key)
            continue
        try:
            path = resolve_media_path(directory, filename)
        except NotFoundError:
            logger.warning("Ignoring unsafe media key %r", key)
            continue
        if path.exists():
            path.unlink()
            removed += 1
    if removed:
        logger.info("Deleted %d media file(s)", removed)
    return removed


def parse_range(header: str, size: int) -> tuple[int, int]:
    """
    Parse a ``Range`` header against a file of ``size`` bytes.

    Only the first range of a multi-range request is honoured. Supports
    ``bytes=start-end``, ``bytes=start-`` and the suffix form ``bytes=-N``.
    ``end`` is capped at ``size - 1``.

    Returns:
        Inclusive (start, end)

    Raises:
        RangeNotSatisfiableError: malformed or unsatisfiable range
    """
    unsatisfiable = RangeNotSatisfiableError(
        "Requested range not satisfiable",
        headers={"Content-Range": f"bytes */{size}"},
    )

    first = header.split(",", 1)[0]
    match = _RANGE_RE.match(first)
    if not match:
        raise unsatisfiable

    start_text, end_text = match.groups()
    if not start_text and not end_text:
        raise unsatisfiable

    if not start_text:
        # Suffix range: the last N bytes
        suffix = int(end_text)
        if suffix == 0 or size == 0:
            raise unsatisfiable
        return max(0, size - suffix), size - 1

    start = int(start_text)
    end = int(end_text) if end_text else size - 1
    end = min(end, size - 1)
    if start >= size or start > end:
        raise unsatisfiable
    return start, end


def iter_file_range(path: Path, start: int, end: int, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield bytes ``start..end`` (inclusive) of a file in chunks."""
    remaining = end - start + 1
    with open(path, "rb") as f:
        f.seek(start)
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
