"""
Pydantic schemas for Organization.
"""

from datetime import datetime

from pydantic import Field

from app.config import settings
from app.schemas.common import BaseSchema


class OrganizationBase(BaseSchema):
    """Base organization schema with common fields."""

    name: str = Field(..., min_length=1, max_length=255, description="Organization name")
    description: str | None = Field(None, max_length=2000)


class OrganizationCreate(OrganizationBase):
    """Schema for creating a new organization."""

    storage_quota: int = Field(
        settings.default_storage_quota_mb,
        ge=settings.min_storage_quota_mb,
        le=settings.max_storage_quota_mb,
        description="Storage quota in MB",
    )


class OrganizationUpdate(BaseSchema):
    """Schema for updating an organization (all fields optional)."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    storage_quota: int | None = Field(
        None,
        ge=settings.min_storage_quota_mb,
        le=settings.max_storage_quota_mb,
    )


class OrganizationRead(OrganizationBase):
    """Schema for reading organization data."""

    id: str
    storage_quota: int
    status: str
    created_at: datetime
    updated_at: datetime


class OrganizationSummary(BaseSchema):
    """Short form embedded in user profiles."""

    id: str
    name: str
    storage_quota: int
    status: str


class OrganizationDetail(OrganizationRead):
    """Organization with member count and storage usage."""

    user_count: int = 0
    storage_used: int = Field(0, description="Bytes used by active files")
    storage_quota_bytes: int = 0
    usage_percentage: float = 0.0


class TopOrganization(BaseSchema):
    id: str
    name: str
    storage_used: int
    storage_quota: int
    file_count: int = 0


class OrganizationStats(BaseSchema):
    """Platform-wide organization totals."""

    total: int
    active: int
    deleted: int
    total_storage_used: int
    total_storage_quota_bytes: int
    top_by_usage: list[TopOrganization]
