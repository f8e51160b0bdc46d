"""
File shares between users of one organization.

Every member can already read their organization's files; a share puts
the file on the recipient's "shared with me" list and, with ``edit``
permission, lets them change it like its uploader.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.timeutil import as_utc, utcnow
from app.models.base import BaseModel


class SharePermission(str, Enum):
    VIEW = "view"
    EDIT = "edit"


class ShareStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class FileShare(BaseModel):
    """A file shared with one user."""

    __tablename__ = "file_shares"

    file_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )

    shared_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    shared_with: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    permission: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SharePermission.VIEW.value,
        comment="view | edit"
    )

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ShareStatus.ACTIVE.value,
    )

    __table_args__ = (
        Index("idx_share_recipient_status", "shared_with", "status"),
    )

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) <= utcnow()

    @property
    def is_usable(self) -> bool:
        return self.status == ShareStatus.ACTIVE.value and not self.is_expired

    def __repr__(self) -> str:
        return f"<FileShare(file_id={self.file_id}, shared_with={self.shared_with}, permission={self.permission})>"
