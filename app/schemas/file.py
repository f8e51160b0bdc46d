"""
Pydantic schemas for files.

``storage_path`` is deliberately absent from every read schema.
"""

from datetime import datetime

from pydantic import EmailStr, Field

from app.models.file_share import SharePermission
from app.models.starred_item import StarredItemType
from app.schemas.common import BaseSchema
from app.schemas.folder import FolderRead


class FileRead(BaseSchema):
    """Schema for reading file metadata."""

    id: str
    name: str
    original_name: str
    description: str | None
    file_size: int
    file_type: str
    mime_type: str
    organization_id: str
    uploaded_by: str | None
    folder_id: str | None
    status: str
    current_version: int = 1
    created_at: datetime
    updated_at: datetime


class TrashedFileRead(FileRead):
    deleted_at: datetime | None
    deleted_by: str | None


class FileUpdate(BaseSchema):
    """Schema for updating file metadata (all optional)."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    folder_id: str | None = Field(None, description="Target folder; empty string moves to root")


class FileRename(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)


class FileMove(BaseSchema):
    folder_id: str | None = Field(None, description="Target folder, null for root")


class TypeBreakdown(BaseSchema):
    file_type: str
    count: int
    total_size: int


class QuotaRead(BaseSchema):
    """Quota and current usage in bytes."""

    quota_bytes: int
    used_bytes: int
    available_bytes: int
    usage_percentage: float


class FileStats(BaseSchema):
    """File statistics for one organization (or the platform)."""

    total_files: int
    total_size: int
    by_type: list[TypeBreakdown]
    recent_uploads: int = Field(..., description="Uploads in the last 7 days")
    trash_count: int
    quota: QuotaRead | None = None


class CleanupResult(BaseSchema):
    purged_count: int
    freed_bytes: int
    failed_count: int = 0


# Versions -----------------------------------------------------------------

class FileVersionRead(BaseSchema):
    """An archived content of a file."""

    id: str
    file_id: str
    version_number: int
    original_name: str
    file_size: int
    mime_type: str
    replaced_by: str | None
    version_note: str | None
    keep_forever: bool
    created_at: datetime


class CurrentVersionRead(BaseSchema):
    version_number: int
    original_name: str
    file_size: int
    mime_type: str
    updated_at: datetime


class FileVersionHistory(BaseSchema):
    """The live content followed by archived versions, newest first."""

    file_id: str
    current: CurrentVersionRead
    versions: list[FileVersionRead]


class VersionKeep(BaseSchema):
    keep: bool = Field(True, description="Pin (true) or unpin (false) the version")


# Sharing ------------------------------------------------------------------

class FileShareCreate(BaseSchema):
    """Share a file with a user of the same organization."""

    email: EmailStr
    permission: SharePermission = SharePermission.VIEW
    expires_at: datetime | None = Field(None, description="Share stops working at this time")


class FileShareRead(BaseSchema):
    id: str
    file_id: str
    shared_by: str | None
    shared_with: str
    shared_with_email: str | None = None
    shared_with_name: str | None = None
    permission: str
    expires_at: datetime | None
    status: str
    created_at: datetime


class SharedFileRead(FileRead):
    """A file on the caller's "shared with me" list."""

    share_id: str
    permission: str
    shared_by: str | None
    shared_at: datetime
    expires_at: datetime | None


# Stars --------------------------------------------------------------------

class StarResult(BaseSchema):
    item_type: StarredItemType
    item_id: str
    starred: bool


class StarredItems(BaseSchema):
    files: list[FileRead]
    folders: list[FolderRead]
