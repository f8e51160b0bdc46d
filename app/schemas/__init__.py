"""
Pydantic schemas package.
"""

from app.schemas.common import (
    APIResponse,
    BaseSchema,
    MessageResponse,
    Page,
    PageMeta,
    ok,
)
from app.schemas.organization import OrganizationCreate, OrganizationRead, OrganizationUpdate
from app.schemas.user import UserCreate, UserProfile, UserRead, UserUpdate

__all__ = [
    # Common
    "APIResponse",
    "BaseSchema",
    "MessageResponse",
    "Page",
    "PageMeta",
    "ok",
    # Organization
    "OrganizationCreate",
    "OrganizationRead",
    "OrganizationUpdate",
    # User
    "UserCreate",
    "UserProfile",
    "UserRead",
    "UserUpdate",
]
