"""
Pydantic schemas for invitations.
"""

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import BaseSchema


class InvitationCreate(BaseSchema):
    """Schema for creating an invitation."""

    role: Literal["member", "organization_admin"] = "member"
    organization_id: str | None = Field(
        None, description="Required for platform owners; ignored for organization admins"
    )
    expires_in_days: int = Field(7, ge=1, le=90)


class InvitationRead(BaseSchema):
    id: str
    code: str
    organization_id: str
    role: str
    expires_at: datetime
    status: str
    created_by: str | None
    used_at: datetime | None
    used_by: str | None
    cancelled_at: datetime | None
    created_at: datetime


class InvitationValidation(BaseSchema):
    """Public answer to "can this code be redeemed?"."""

    valid: bool
    organization_id: str | None = None
    organization_name: str | None = None
    role: str | None = None
    expires_at: datetime | None = None
    reason: str | None = None
