"""
Factory pattern for creating test data.

Provides easy-to-use functions for creating test objects
with sensible defaults and optional overrides.
"""

from datetime import timedelta
from pathlib import Path
from typing import Any

from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import hash_password
from app.core.timeutil import utcnow
from app.features.files.storage import generate_file_path, get_mime_type
from app.features.invitations.service import generate_code
from app.models import (
    File,
    FileStatus,
    Folder,
    FolderStatus,
    Invitation,
    InvitationStatus,
    Organization,
    OrganizationStatus,
    Reminder,
    ReminderStatus,
    Role,
    User,
    UserStatus,
)

fake = Faker()


async def _save(db: AsyncSession, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


class OrganizationFactory:
    """Factory for creating test organizations."""

    @staticmethod
    async def create(db: AsyncSession, **kwargs: Any) -> Organization:
        """
        Create a test organization.

        Usage:
            org = await OrganizationFactory.create(db, storage_quota=100)
        """
        defaults = {
            "name": f"{fake.company()} {fake.unique.random_int(1, 99999)}",
            "description": fake.catch_phrase(),
            "storage_quota": settings.default_storage_quota_mb,
            "status": OrganizationStatus.ACTIVE.value,
        }
        defaults.update(kwargs)
        return await _save(db, Organization(**defaults))


class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    async def create(
        db: AsyncSession,
        organization: Organization | None,
        **kwargs: Any,
    ) -> User:
        """
        Create a test user.

        Usage:
            user = await UserFactory.create(db, org, role="organization_admin")
        """
        password = kwargs.pop("password", "Test123!")

        defaults = {
            "email": fake.unique.email().lower(),
            "password_hash": hash_password(password),
            "first_name": fake.first_name(),
            "last_name": fake.last_name(),
            "role": Role.MEMBER.value,
            "organization_id": organization.id if organization else None,
            "status": UserStatus.ACTIVE.value,
        }
        defaults.update(kwargs)
        return await _save(db, User(**defaults))


class FolderFactory:
    """Factory for creating test folders."""

    @staticmethod
    async def create(db: AsyncSession, organization: Organization, **kwargs: Any) -> Folder:
        defaults = {
            "name": fake.word().capitalize(),
            "organization_id": organization.id,
            "status": FolderStatus.ACTIVE.value,
        }
        defaults.update(kwargs)
        return await _save(db, Folder(**defaults))


class FileFactory:
    """Factory for creating test files."""

    @staticmethod
    async def create(
        db: AsyncSession,
        organization: Organization,
        uploaded_by: User | None = None,
        content: bytes | None = None,
        **kwargs: Any,
    ) -> File:
        """
        Create a test file row; with ``content`` the blob is written too.

        Usage:
            file = await FileFactory.create(db, org, user, content=b"hello")
        """
        original_name = kwargs.pop("original_name", f"{fake.word()}_{fake.unique.random_int(1, 999_999)}.pdf")
        storage_path = kwargs.pop("storage_path", generate_file_path(organization.id, original_name))

        if content is not None:
            blob = Path(settings.upload_dir).resolve() / storage_path
            blob.parent.mkdir(parents=True, exist_ok=True)
            blob.write_bytes(content)

        defaults = {
            "name": original_name,
            "original_name": original_name,
            "storage_path": storage_path,
            "file_size": len(content) if content is not None else fake.random_int(100, 10_000),
            "file_type": Path(original_name).suffix.lstrip(".").lower(),
            "mime_type": get_mime_type(original_name),
            "organization_id": organization.id,
            "uploaded_by": uploaded_by.id if uploaded_by else None,
            "status": FileStatus.ACTIVE.value,
        }
        defaults.update(kwargs)
        return await _save(db, File(**defaults))


class InvitationFactory:
    """Factory for creating test invitations."""

    @staticmethod
    async def create(db: AsyncSession, organization: Organization, **kwargs: Any) -> Invitation:
        defaults = {
            "code": generate_code(),
            "organization_id": organization.id,
            "role": Role.MEMBER.value,
            "expires_at": utcnow() + timedelta(days=7),
            "status": InvitationStatus.ACTIVE.value,
        }
        defaults.update(kwargs)
        return await _save(db, Invitation(**defaults))


class ReminderFactory:
    """Factory for creating test reminders."""

    @staticmethod
    async def create(db: AsyncSession, file: File, user: User, **kwargs: Any) -> Reminder:
        defaults = {
            "file_id": file.id,
            "user_id": user.id,
            "organization_id": file.organization_id,
            "reminder_datetime": utcnow() + timedelta(days=1),
            "title": fake.sentence(nb_words=4),
            "note": fake.sentence(),
            "status": ReminderStatus.PENDING.value,
        }
        defaults.update(kwargs)
        return await _save(db, Reminder(**defaults))
