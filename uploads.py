"""Review image storage.

Images are written under a local directory and served back from
``config.UPLOAD_URL``.
"""
import os
import uuid
from typing import Optional

import structlog

from errors import FileTooLarge, UploadFailure, ValidationError

logger = structlog.get_logger(__name__)

IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
FOLDER = "reviews"


class LocalImageStore:
    def __init__(self, directory: str, base_url: str, max_bytes: Optional[int] = None):
        self.directory = directory
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes

    def _path(self, public_id: str) -> str:
        return os.path.join(self.directory, *public_id.split("/"))

    def save(self, filename: str, content_type: Optional[str], data: bytes) -> dict:
        ext = IMAGE_EXTENSIONS.get((content_type or "").lower())
        if ext is None:
            raise ValidationError("Only images are allowed")
        if self.max_bytes is not None and len(data) > self.max_bytes:
            raise FileTooLarge("File size too large")

        public_id = f"{FOLDER}/{uuid.uuid4().hex}{ext}"
        path = self._path(public_id)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as fh:
                fh.write(data)
        except OSError as e:
            logger.error("Image upload failed", filename=filename, error=str(e))
            raise UploadFailure("Image upload failed")

        return {"public_id": public_id, "url": f"{self.base_url}/{public_id}"}

    def delete(self, public_id: str):
        try:
            os.remove(self._path(public_id))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Image removal failed", public_id=public_id, error=str(e))
