"""
Pydantic schemas for audit entries.
"""

from datetime import datetime
from typing import Any

from pydantic import field_validator

from app.core.audit import parse_details
from app.schemas.common import BaseSchema


class AuditLogRead(BaseSchema):
    id: int
    user_id: str | None
    organization_id: str | None
    action: str
    resource_type: str
    resource_id: str | None
    details: Any = None
    ip_address: str | None
    created_at: datetime

    @field_validator("details", mode="before")
    @classmethod
    def decode_details(cls, v: Any) -> Any:
        return parse_details(v) if isinstance(v, str) else v


class AuditLogDetail(AuditLogRead):
    """Entry with actor and organization names resolved."""

    user_name: str | None = None
    user_email: str | None = None
    organization_name: str | None = None


class CountItem(BaseSchema):
    key: str
    count: int


class DailyActivity(BaseSchema):
    date: str
    count: int


class AuditStats(BaseSchema):
    total: int
    by_action: list[CountItem]
    by_resource_type: list[CountItem]
    last_7_days: list[DailyActivity]


class AuditFilterOptions(BaseSchema):
    actions: list[str]
    resource_types: list[str]
