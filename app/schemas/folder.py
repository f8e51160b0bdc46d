"""
Pydantic schemas for folders.
"""

from datetime import datetime

from pydantic import Field

from app.schemas.common import BaseSchema


class FolderCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    parent_id: str | None = None
    organization_id: str | None = Field(None, description="Required for platform owners")


class FolderRename(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)


class FolderMove(BaseSchema):
    parent_id: str | None = Field(None, description="New parent, null for root")


class FolderRead(BaseSchema):
    id: str
    name: str
    description: str | None
    organization_id: str
    parent_id: str | None
    created_by: str | None
    status: str
    created_at: datetime
    updated_at: datetime


class FolderListItem(FolderRead):
    file_count: int = 0
