"""
Folder model (tree of folders per organization).
"""

from enum import Enum

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TrashableMixin


class FolderStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class Folder(TrashableMixin, BaseModel):
    """Folder node; ``parent_id`` is null for top-level folders."""

    __tablename__ = "folders"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FolderStatus.ACTIVE.value,
    )

    __table_args__ = (
        Index("idx_folder_org_parent", "organization_id", "parent_id"),
    )

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name={self.name})>"
