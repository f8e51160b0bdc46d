"""
Organization model.

Each organization is an isolated tenant with its own users, files
and storage quota.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel

BYTES_PER_MB = 1024 * 1024


class OrganizationStatus(str, Enum):
    """Organization lifecycle status."""
    ACTIVE = "active"
    DELETED = "deleted"


class Organization(BaseModel):
    """Tenant organization with a storage quota in binary megabytes."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Organization name (unique among non-deleted)"
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Free-form description"
    )

    storage_quota: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1000,
        comment="Storage quota in MB (1 MB = 1024 * 1024 bytes)"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OrganizationStatus.ACTIVE.value,
        index=True,
        comment="active | deleted"
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Soft delete timestamp"
    )

    __table_args__ = (
        CheckConstraint("storage_quota >= 0", name="storage_quota_non_negative"),
        Index(
            "uq_organizations_live_name",
            "name",
            unique=True,
            postgresql_where=text("status <> 'deleted'"),
            sqlite_where=text("status <> 'deleted'"),
        ),
    )

    @property
    def quota_bytes(self) -> int:
        """Quota converted to bytes."""
        return self.storage_quota * BYTES_PER_MB

    @property
    def is_active(self) -> bool:
        return self.status == OrganizationStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"
