# uploads.py — stores the uploaded source and removes it once the batch is over

import os, uuid, logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import UploadFile

from errors import UploadTooLarge, ValidationError
from utils import Settings, discard, safe

logger = logging.getLogger(__name__)

ALLOWED_MIMES = (
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",
    "video/mpeg",
)
CHUNK_SIZE = 1024 * 1024

NO_VIDEO = 'No video file provided. Use field name "video".'
BAD_TYPE = "Invalid file type. Only video files are allowed."
TOO_LARGE = "File too large. Maximum size is 2GB."


@dataclass
class UploadedSource:
    path: str
    original_name: str
    released: bool = False

    def release(self):
        if self.released:
            return
        self.released = True
        try:
            os.remove(self.path)
        except OSError as e:
            logger.warning("⚠️ [Server] Failed to cleanup uploaded file: %s", e)


def check_upload(upload: Optional[UploadFile]):
    if upload is None or not upload.filename:
        raise ValidationError(NO_VIDEO)
    media_type = (upload.content_type or "").split(";")[0].strip().lower()
    if media_type not in ALLOWED_MIMES:
        raise ValidationError(BAD_TYPE)


async def store_upload(
    upload: UploadFile,
    settings: Settings,
    new_id: Callable[[], str] = lambda: uuid.uuid4().hex,
) -> UploadedSource:
    if upload.size is not None and upload.size > settings.max_upload_bytes:
        raise UploadTooLarge(TOO_LARGE)

    ext = os.path.splitext(upload.filename or "")[1]
    ext = safe(ext) if ext else ""
    path = os.path.join(settings.upload_dir, f"{new_id()}{ext}")
    written = 0
    try:
        with open(path, "wb") as f:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > settings.max_upload_bytes:
                    raise UploadTooLarge(TOO_LARGE)
                f.write(chunk)
    except BaseException:
        discard(path)
        raise
    return UploadedSource(path=path, original_name=upload.filename or "")


@asynccontextmanager
async def stored_upload(upload: UploadFile, settings: Settings, **kwargs):
    """Yield the stored source; it is deleted on exit whatever happened inside."""
    source = await store_upload(upload, settings, **kwargs)
    try:
        yield source
    finally:
        source.release()
