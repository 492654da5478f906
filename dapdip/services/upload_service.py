"""
dapdip.services.upload_service — Media upload storage
=======================================================

Stores user uploads (post/story images, reel videos, voice notes) in a
configurable ``uploads/`` directory which the API serves statically at
``/api/uploads``.  Each upload *kind* has its own extension and MIME
allow-list.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("DAPDIP_UPLOAD_DIR", "uploads"))
URL_PREFIX = "/api/uploads/"

MAX_FILE_SIZE: dict[str, int] = {
    "image": 10 * 1024 * 1024,
    "video": 100 * 1024 * 1024,
    "audio": 10 * 1024 * 1024,
}
ALLOWED_EXTENSIONS: dict[str, set[str]] = {
    "image": {".png", ".jpg", ".jpeg", ".gif", ".webp"},
    "video": {".mp4", ".webm", ".mov"},
    "audio": {".webm", ".ogg", ".mp3", ".wav", ".m4a"},
}
ALLOWED_MIME_TYPES: dict[str, set[str]] = {
    "image": {"image/png", "image/jpeg", "image/gif", "image/webp"},
    "video": {"video/mp4", "video/webm", "video/quicktime"},
    "audio": {
        "audio/webm",
        "audio/ogg",
        "audio/mpeg",
        "audio/wav",
        "audio/x-wav",
        "audio/mp4",
        "audio/x-m4a",
    },
}


def ensure_upload_dir() -> None:
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)


def validate_upload(
    filename: str, size: int, content_type: str | None, kind: str
) -> str:
    """Return the lowercased extension of an acceptable upload.

    Raises
    ------
    ValueError
        For an unknown *kind*, an oversize file, or a disallowed
        extension / MIME type.
    """
    if kind not in ALLOWED_EXTENSIONS:
        raise ValueError(f"Unknown upload kind: {kind!r}")

    limit = MAX_FILE_SIZE[kind]
    if size > limit:
        raise ValueError(f"File too large: {size} bytes (max {limit // 1024 // 1024}MB)")

    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS[kind]:
        raise ValueError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS[kind]))}"
        )

    # Browsers append codec parameters, e.g. "audio/webm;codecs=opus"
    mime = content_type.split(";", 1)[0].strip() if content_type else None
    if mime and mime not in ALLOWED_MIME_TYPES[kind]:
        raise ValueError(
            f"MIME type not allowed: {mime!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES[kind]))}"
        )
    return ext


async def save_upload(
    filename: str,
    content: bytes,
    content_type: str | None = None,
    *,
    kind: str = "image",
) -> str:
    """Validate and persist an uploaded file.

    Returns the URL path of the stored file, e.g.
    ``/api/uploads/3f2a….webm``.
    """
    ext = validate_upload(filename, len(content), content_type, kind)

    ensure_upload_dir()
    unique_name = f"{uuid.uuid4().hex}{ext}"
    await asyncio.to_thread((UPLOAD_DIR / unique_name).write_bytes, content)
    logger.debug("Stored %s upload %s (%d bytes)", kind, unique_name, len(content))
    return f"{URL_PREFIX}{unique_name}"


def delete_upload(url_path: str) -> bool:
    """Remove a stored upload by URL path; True if a file was deleted."""
    if not url_path.startswith(URL_PREFIX):
        return False
    filepath = UPLOAD_DIR / url_path.rsplit("/", 1)[-1]
    if filepath.is_file():
        filepath.unlink()
        return True
    return False
