"""
Pydantic schemas for the platform administration views.
"""

from pydantic import Field

from app.schemas.audit import DailyActivity
from app.schemas.common import BaseSchema
from app.schemas.organization import TopOrganization


class PlatformTotals(BaseSchema):
    active_organizations: int
    active_users: int
    total_files: int
    total_storage_used: int
    total_storage_quota_bytes: int


class DashboardStats(BaseSchema):
    """Platform overview for the admin dashboard."""

    totals: PlatformTotals
    top_organizations: list[TopOrganization]
    activity_last_7_days: list[DailyActivity]
    files_uploaded_7d: int
    active_users_30d: int


class OrganizationStorage(BaseSchema):
    id: str
    name: str
    storage_quota_bytes: int
    used_bytes: int
    usage_percentage: float
    file_count: int


class FileTypeStorage(BaseSchema):
    file_type: str
    file_count: int
    total_size: int
    avg_size: float


class StorageAnalytics(BaseSchema):
    total_quota_bytes: int
    total_used_bytes: int
    usage_percentage: float
    by_organization: list[OrganizationStorage]
    by_file_type: list[FileTypeStorage]


class PlatformSettings(BaseSchema):
    """Effective upload and quota settings."""

    max_file_size: int
    allowed_file_types: list[str]
    default_storage_quota: int = Field(..., description="MB")
    trash_retention_days: int
    session_timeout_minutes: int


class PlatformSettingsUpdate(BaseSchema):
    max_file_size: int | None = Field(None, gt=0)
    allowed_file_types: list[str] | None = None
    default_storage_quota: int | None = Field(None, gt=0)
    trash_retention_days: int | None = Field(None, ge=1)
    session_timeout_minutes: int | None = Field(None, ge=1)
