"""
Pydantic schemas for User.
"""

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from app.config import settings
from app.models.user import Role, UserStatus
from app.schemas.common import BaseSchema
from app.schemas.organization import OrganizationSummary


def _check_password_length(v: str) -> str:
    if len(v) < settings.min_password_length:
        raise ValueError(
            f"Password must be at least {settings.min_password_length} characters long"
        )
    return v


class UserBase(BaseSchema):
    """Base user schema."""

    email: EmailStr = Field(..., description="User email address")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class UserCreate(UserBase):
    """Schema for an admin creating a user."""

    password: str = Field(..., max_length=100)
    role: Role = Role.MEMBER
    organization_id: str | None = Field(
        None, description="Required when a platform owner creates a non-owner user"
    )

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_length(v)


class UserUpdate(BaseSchema):
    """Schema for updating user (all optional)."""

    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    role: Role | None = None
    status: UserStatus | None = None
    organization_id: str | None = None


class PasswordChange(BaseSchema):
    """Schema for changing a password."""

    current_password: str | None = Field(None, description="Required when changing your own password")
    new_password: str = Field(..., max_length=100)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return _check_password_length(v)


class UserRead(BaseSchema):
    """Schema for reading user data."""

    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    organization_id: str | None
    status: str
    last_login: datetime | None
    created_at: datetime
    updated_at: datetime


class UserProfile(UserRead):
    """User data with organization summary."""

    organization: OrganizationSummary | None = None


class UserStats(BaseSchema):
    """User counts for the admin overview."""

    total: int
    by_role: dict[str, int]
    by_status: dict[str, int]
    new_last_30_days: int
