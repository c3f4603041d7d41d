import logging
import os
import re
import time
from typing import Tuple

from fastapi import HTTPException, UploadFile, status

from .settings import get_settings

logger = logging.getLogger(__name__)

EXTENSION_PATTERN = re.compile(r"^[a-z0-9]{1,8}$")
URL_PREFIX = "/avatars"


def _extension(filename: str, content_type: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if not EXTENSION_PATTERN.match(ext):
        ext = content_type.split("/", 1)[-1].split("+", 1)[0].lower()
    return ext if EXTENSION_PATTERN.match(ext) else "img"


def read_avatar(upload: UploadFile) -> bytes:
    settings = get_settings()
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload an image.",
        )
    data = upload.file.read(settings.avatar_max_bytes + 1)
    if len(data) > settings.avatar_max_bytes:
        limit_mb = settings.avatar_max_bytes // (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Please upload an image smaller than {limit_mb}MB.",
        )
    return data


def store_avatar(user_id: int, upload: UploadFile) -> Tuple[str, str]:
    """Validate and save an avatar, returning (public_url, relative_path)."""
    settings = get_settings()
    data = read_avatar(upload)
    ext = _extension(upload.filename or "", upload.content_type or "")
    relative_path = f"{user_id}/avatar-{int(time.time() * 1000)}.{ext}"
    target = os.path.join(settings.avatar_dir, relative_path)
    os.makedirs(os.path.dirname(target), exist_ok=True)
    with open(target, "wb") as f:
        f.write(data)
    logger.info("Stored avatar for user %s at %s", user_id, relative_path)
    return f"{settings.public_base_url}{URL_PREFIX}/{relative_path}", relative_path
