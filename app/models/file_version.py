"""
Archived file contents.

Uploading a new version moves the file's current blob into a
``FileVersion`` row and points the file at the new blob. Archived
versions do not count against the organization's quota.
"""

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class FileVersion(BaseModel):
    """One superseded content of a file."""

    __tablename__ = "file_versions"

    file_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    original_name: Mapped[str] = mapped_column(String(255), nullable=False)

    storage_path: Mapped[str] = mapped_column(Text, nullable=False)

    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    mime_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="application/octet-stream",
    )

    replaced_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="User whose upload superseded this content"
    )

    version_note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Note given with the superseding upload"
    )

    keep_forever: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Pinned versions survive version pruning"
    )

    __table_args__ = (
        UniqueConstraint("file_id", "version_number", name="uq_file_version_number"),
    )

    def __repr__(self) -> str:
        return f"<FileVersion(file_id={self.file_id}, version={self.version_number})>"
