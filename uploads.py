import logging
import os
import uuid
from pathlib import Path

from fastapi import UploadFile

from config import settings
from errors import InvalidRequest, StoreError

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


class UploadTooLarge(StoreError):
    status_code = 413


def upload_root() -> Path:
    return Path(settings.upload_dir)


def save_image(upload: UploadFile, folder: str) -> str:
    """Store an uploaded image under UPLOAD_DIR/folder and return its public URL."""
    if not (upload.content_type or "").startswith("image/"):
        raise InvalidRequest("Only image uploads are allowed")

    ext = os.path.splitext(upload.filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        ext = ".jpg"

    data = upload.file.read()
    if not data:
        raise InvalidRequest("Uploaded file is empty")
    if len(data) > settings.max_upload_mb * 1024 * 1024:
        raise UploadTooLarge(f"Image exceeds {settings.max_upload_mb} MB")

    target_dir = upload_root() / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    name = f"{uuid.uuid4().hex}{ext}"
    (target_dir / name).write_bytes(data)
    logger.info("Stored upload %s/%s (%d bytes)", folder, name, len(data))
    return f"{URL_PREFIX}{folder}/{name}"


def delete_image(url: str) -> bool:
    """Remove a locally stored image; remote URLs are left alone."""
    if not url or not url.startswith(URL_PREFIX):
        return False
    root = upload_root().resolve()
    path = (root / url[len(URL_PREFIX):]).resolve()
    if root not in path.parents:
        logger.warning("Refusing to delete %s outside the upload directory", url)
        return False
    if path.is_file():
        path.unlink()
        logger.info("Deleted upload %s", url)
        return True
    return False
