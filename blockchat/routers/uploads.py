"""Multipart file upload for chat attachments."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Request
from fastapi import UploadFile
from fastapi import status
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse

from blockchat import metrics
from blockchat.config import Settings
from blockchat.constants import UPLOAD_PATH
from blockchat.constants import UPLOADS_MOUNT
from blockchat.dependencies import get_app_settings
from blockchat.services.upload_service import store_upload

router = APIRouter(tags=["uploads"])
logger = logging.getLogger(__name__)


@router.post(UPLOAD_PATH)
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_app_settings),
):
    """Store one file from the ``file`` form field and return its public URL."""

    if file is None:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "No file uploaded"})

    try:
        stored = await store_upload(file, settings.uploads_dir, settings.max_upload_bytes)
    except HTTPException as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    finally:
        await file.close()

    file_url = f"{str(request.base_url).rstrip('/')}{UPLOADS_MOUNT}/{stored.filename}"
    metrics.uploads_total.inc()
    logger.info(
        "File uploaded: filename=%s size=%s mimetype=%s url=%s",
        stored.filename,
        stored.size,
        stored.mimetype,
        file_url,
    )

    return {
        "success": True,
        "fileUrl": file_url,
        "filename": stored.filename,
        "size": stored.size,
        "mimetype": stored.mimetype,
    }
