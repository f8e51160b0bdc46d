"""
Database models package.
"""

from app.core.database import Base
from app.models.base import BaseModel
from app.models.organization import BYTES_PER_MB, Organization, OrganizationStatus
from app.models.user import Role, User, UserStatus
from app.models.folder import Folder, FolderStatus
from app.models.file import File, FileStatus
from app.models.file_version import FileVersion
from app.models.file_share import FileShare, SharePermission, ShareStatus
from app.models.starred_item import StarredItem, StarredItemType
from app.models.invitation import Invitation, InvitationStatus
from app.models.reminder import (
    OPEN_REMINDER_STATUSES,
    RecurrencePattern,
    Reminder,
    ReminderPriority,
    ReminderStatus,
)
from app.models.audit_log import AuditLog

__all__ = [
    "Base",
    "BaseModel",
    "BYTES_PER_MB",
    "Organization",
    "OrganizationStatus",
    "Role",
    "User",
    "UserStatus",
    "Folder",
    "FolderStatus",
    "File",
    "FileStatus",
    "FileVersion",
    "FileShare",
    "SharePermission",
    "ShareStatus",
    "StarredItem",
    "StarredItemType",
    "Invitation",
    "InvitationStatus",
    "OPEN_REMINDER_STATUSES",
    "RecurrencePattern",
    "Reminder",
    "ReminderPriority",
    "ReminderStatus",
    "AuditLog",
]
