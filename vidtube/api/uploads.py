"""Stage multipart uploads on local disk before they go to the media store."""

import asyncio
import random
import shutil
import time
from pathlib import Path
from typing import Optional

import structlog
from fastapi import UploadFile

logger = structlog.get_logger(__name__)


def _staged_name(filename: str) -> str:
    """Original base name plus a time-based suffix so uploads never collide."""
    base = Path(filename).name or "upload"
    return f"{base}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}"


def _write(upload: UploadFile, destination: Path) -> None:
    upload.file.seek(0)
    with destination.open("wb") as out:
        shutil.copyfileobj(upload.file, out)


async def stage_upload(upload: Optional[UploadFile], temp_dir: str) -> Optional[str]:
    """Write an uploaded file into ``temp_dir``.

    Args:
        upload: The multipart file, or None when the field was not sent
        temp_dir: Staging directory (created if missing)

    Returns:
        Local path of the staged file, or None when nothing was uploaded
    """
    if upload is None or not upload.filename:
        return None

    directory = Path(temp_dir)
    directory.mkdir(parents=True, exist_ok=True)
    destination = directory / _staged_name(upload.filename)

    await asyncio.to_thread(_write, upload, destination)
    await upload.close()

    logger.debug("upload_staged", path=str(destination))
    return str(destination)
