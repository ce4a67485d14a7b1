"""Validation and storage of chat attachments.

The only public call-site is :func:`store_upload`, used by ``POST /upload``.
Files are written under the configured uploads directory and served back by
the ``/uploads`` static mount.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from typing import Optional

from fastapi import UploadFile
from fastapi import status
from fastapi.exceptions import HTTPException

from blockchat.utils.time import epoch_ms

logger = logging.getLogger(__name__)

# Matched against both the lowercased file extension and the MIME type.
ALLOWED_TYPES: Final[re.Pattern[str]] = re.compile(r"jpeg|jpg|png|gif|mp4|mov|webm|mp3|wav|ogg|pdf|doc|docx")

CHUNK_SIZE: Final[int] = 1024 * 1024


@dataclass
class StoredUpload:
    filename: str
    size: int
    mimetype: str


def is_allowed(filename: str, content_type: Optional[str]) -> bool:
    """True when both the extension and the MIME type look like media/docs."""

    extension = Path(filename).suffix.lower()
    return bool(ALLOWED_TYPES.search(extension)) and bool(ALLOWED_TYPES.search(content_type or ""))


def unique_filename(original: str) -> str:
    """``<epoch-ms>-<random>`` plus the original extension."""

    return f"{epoch_ms()}-{random.randint(0, 10**9)}{Path(original).suffix}"


async def store_upload(upload: UploadFile, uploads_dir: Path, max_bytes: int) -> StoredUpload:
    """Validate *upload*, stream it to disk and describe the stored file.

    Raises:
        HTTPException: 400 for a disallowed type, 413 when the body exceeds
            *max_bytes*, 500 when the file cannot be written.
    """

    original = upload.filename or ""
    if not is_allowed(original, upload.content_type):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file type")

    uploads_dir.mkdir(parents=True, exist_ok=True)
    name = unique_filename(original)
    dest_path = uploads_dir / name

    size = 0
    try:
        with dest_path.open("wb") as fh:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")
                fh.write(chunk)
    except HTTPException:
        dest_path.unlink(missing_ok=True)
        raise
    except OSError as exc:
        dest_path.unlink(missing_ok=True)
        logger.error("Upload error: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Upload failed") from exc

    return StoredUpload(filename=name, size=size, mimetype=upload.content_type or "application/octet-stream")


__all__ = ["ALLOWED_TYPES", "StoredUpload", "is_allowed", "store_upload", "unique_filename"]
