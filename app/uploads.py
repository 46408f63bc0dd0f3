import logging
import random
import time
from pathlib import Path

from fastapi import UploadFile

import errors
from config import Settings

logger = logging.getLogger(__name__)

# The stored suffix comes from here, never from the client filename
IMAGE_SUFFIXES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def save_proof_image(upload: UploadFile, settings: Settings, field_name: str = "paymentScreenshot") -> str:
    """Store one payment screenshot and return the public path it is served from."""
    content_type = (upload.content_type or "").lower()
    suffix = IMAGE_SUFFIXES.get(content_type)
    if suffix is None:
        logger.warning("Rejected upload %r with content type %r", upload.filename, content_type)
        raise errors.UploadRejected("Only image files are allowed!")

    data = upload.file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise errors.UploadTooLarge(
            f"File too large, limit is {settings.max_upload_bytes // (1024 * 1024)}MB"
        )

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    filename = f"{field_name}-{unique_suffix}{suffix}"
    (upload_dir / filename).write_bytes(data)
    logger.info("Saved upload %s (%d bytes)", filename, len(data))
    return f"{settings.upload_url_prefix.rstrip('/')}/{filename}"


def delete_proof_image(public_path: str, settings: Settings):
    """Remove a screenshot stored by save_proof_image; a missing file is ignored."""
    filename = Path(public_path).name
    (Path(settings.upload_dir) / filename).unlink(missing_ok=True)
    logger.info("Removed upload %s", filename)
