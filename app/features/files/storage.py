"""
Blob storage on the local filesystem.

Files are stored under the upload root in a directory structure:
uploads/
  └── organizations/
      └── {organization_id}/
          └── {year}/
              └── {month}/
                  └── {uuid}_{filename}

Rows store the path relative to the upload root.
"""

import mimetypes
import re
import uuid
from pathlib import Path

from fastapi import UploadFile

from app.config import settings
from app.core.access import resolve_storage_path
from app.core.exceptions import bad_request
from app.core.logging_config import get_logger
from app.core.timeutil import utcnow

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LocalFileStorage:
    """Local filesystem blob store."""

    def __init__(self, base_path: str | None = None):
        self.base_path = Path(base_path or settings.upload_dir)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def full_path(self, path: str) -> Path:
        """Physical location of a stored path (absolute paths pass through)."""
        return resolve_storage_path(path, self.base_path)

    async def save_upload(self, upload: UploadFile, path: str, max_size: int) -> int:
        """
        Stream an upload to disk.

        The partial file is removed if the size bound is crossed or the
        transfer fails.

        Returns:
            Bytes written

        Raises:
            ValidationError: Upload larger than ``max_size``
        """
        full_path = self.full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        try:
            with open(full_path, "wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_size:
                        raise bad_request(
                            f"File too large. Maximum size is {format_size(max_size)}"
                        )
                    out.write(chunk)
        except BaseException:
            full_path.unlink(missing_ok=True)
            raise

        logger.debug("blob_saved", path=path, size=size)
        return size

    async def delete(self, path: str) -> bool:
        """Delete a blob; False if it was already gone."""
        full_path = self.full_path(path)
        if full_path.exists():
            full_path.unlink()
            logger.info("blob_deleted", path=path)
            return True

        logger.warning("blob_missing_on_delete", path=path)
        return False

    async def exists(self, path: str) -> bool:
        return self.full_path(path).exists()


def get_storage() -> LocalFileStorage:
    """Storage backend rooted at the configured upload directory."""
    return LocalFileStorage()


def file_extension(filename: str) -> str:
    """Lowercase extension without the dot ('' if none)."""
    return Path(filename).suffix.lower().lstrip(".")


def validate_file_extension(filename: str) -> bool:
    """
    Validate file extension against allowed list.

    Args:
        filename: Filename to validate

    Returns:
        True if extension is allowed
    """
    ext = file_extension(filename)
    return bool(ext) and ext in settings.allowed_extensions


def safe_filename(filename: str) -> str:
    """Filesystem-safe version of a user-supplied name."""
    name = _UNSAFE_CHARS.sub("_", Path(filename).name).strip("._")
    return name[:100] or "file"


def generate_file_path(organization_id: str, filename: str) -> str:
    """
    Generate organized relative file path.

    Format: organizations/{organization_id}/{year}/{month}/{uuid}_{filename}
    """
    now = utcnow()
    unique_filename = f"{uuid.uuid4()}_{safe_filename(filename)}"
    return f"organizations/{organization_id}/{now:%Y}/{now:%m}/{unique_filename}"


def get_mime_type(filename: str) -> str:
    """
    Determine MIME type from filename extension.

    Args:
        filename: Filename with extension

    Returns:
        MIME type string
    """
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"


def format_size(size: int) -> str:
    """Human-readable byte count using binary units."""
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
