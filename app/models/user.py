"""
User model for authentication and authorization.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel


class Role(str, Enum):
    """User roles, from most to least privileged."""
    PLATFORM_OWNER = "platform_owner"
    ORGANIZATION_ADMIN = "organization_admin"
    MEMBER = "member"


class UserStatus(str, Enum):
    """User account status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


class User(BaseModel):
    """User account model."""

    __tablename__ = "users"

    # Authentication
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address (unique)"
    )

    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Bcrypt hashed password"
    )

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Authorization
    role: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=Role.MEMBER.value,
        comment="platform_owner | organization_admin | member"
    )

    organization_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Owning organization (null only for platform owners)"
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserStatus.ACTIVE.value,
        index=True,
        comment="active | inactive | deleted"
    )

    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    organization: Mapped["Organization"] = relationship(
        "Organization",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "role = 'platform_owner' OR organization_id IS NOT NULL",
            name="organization_required_for_role",
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_platform_owner(self) -> bool:
        return self.role == Role.PLATFORM_OWNER.value

    @property
    def is_admin(self) -> bool:
        """Organization admin or platform owner."""
        return self.role in (Role.ORGANIZATION_ADMIN.value, Role.PLATFORM_OWNER.value)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
