"""
Shared model bases.

Provides:
- ``BaseModel``: UUID string primary key and server-side timestamps
- ``TrashableMixin``: who moved a row to the trash, and when
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from app.core.database import Base
from app.core.timeutil import utcnow

ACTIVE = "active"
DELETED = "deleted"


class BaseModel(Base):
    """
    Abstract base for every table except the audit log.

    Server-generated timestamps are fetched back on flush so that
    serializing a freshly committed row never triggers a lazy load.
    """

    __abstract__ = True
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"


class TrashableMixin:
    """
    Soft deletion for files and folders.

    The row keeps its place in the table with ``status = 'deleted'``
    until it is restored or purged.
    """

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @declared_attr
    def deleted_by(cls) -> Mapped[str | None]:
        return mapped_column(
            String(36),
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        )

    @property
    def in_trash(self) -> bool:
        return self.status == DELETED

    def move_to_trash(self, actor_id: str | None) -> None:
        self.status = DELETED
        self.deleted_at = utcnow()
        self.deleted_by = actor_id

    def take_out_of_trash(self) -> None:
        self.status = ACTIVE
        self.deleted_at = None
        self.deleted_by = None
