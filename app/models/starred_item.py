"""
Per-user stars on files and folders.
"""

from enum import Enum

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class StarredItemType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class StarredItem(BaseModel):
    """``item_id`` points at a file or a folder depending on ``item_type``."""

    __tablename__ = "starred_items"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_type: Mapped[str] = mapped_column(String(20), nullable=False)

    item_id: Mapped[str] = mapped_column(String(36), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "item_type", "item_id", name="uq_starred_item"),
    )
