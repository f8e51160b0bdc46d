"""
Stored file model.

The blob lives in the upload directory; this row holds its metadata
and the path used to find it.
"""

from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TrashableMixin


class FileStatus(str, Enum):
    """File lifecycle status."""
    ACTIVE = "active"
    DELETED = "deleted"  # In trash


class File(TrashableMixin, BaseModel):
    """Metadata for an uploaded file."""

    __tablename__ = "files"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Display name"
    )

    original_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Filename as uploaded"
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    storage_path: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Blob location: absolute, or relative to the upload root"
    )

    file_size: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Size in bytes"
    )

    file_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Lowercase extension without the dot"
    )

    mime_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="application/octet-stream",
    )

    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    uploaded_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    folder_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FileStatus.ACTIVE.value,
        comment="active | deleted"
    )

    current_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Number of the content in storage_path; older ones live in file_versions"
    )

    __table_args__ = (
        CheckConstraint("file_size >= 0", name="file_size_non_negative"),
        Index("idx_file_org_status", "organization_id", "status"),
        Index("idx_file_org_folder", "organization_id", "folder_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == FileStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<File(id={self.id}, name={self.name}, status={self.status})>"
