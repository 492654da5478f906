"""
dapdip.api.routes.media — Image & video upload
================================================

Posts, reels and stories reference media by URL; clients upload the file
here first and put the returned URL in the create request.
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, UploadFile

from dapdip.api.rate_limit import rate_limited
from dapdip.services.upload_service import save_upload

router = APIRouter(prefix="/media", tags=["media"])
logger = logging.getLogger(__name__)


@router.post("/{kind}", status_code=201)
async def upload_media(
    kind: Literal["image", "video"],
    file: UploadFile,
    user_id: int = Depends(rate_limited("content")),
):
    """Store an image or video and return its public URL."""
    content = await file.read()
    try:
        url = await save_upload(
            file.filename or f"upload.{'png' if kind == 'image' else 'mp4'}",
            content,
            file.content_type,
            kind=kind,
        )
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc

    logger.info("User %s uploaded %s %s", user_id, kind, url)
    return {"url": url, "kind": kind, "size_bytes": len(content)}
