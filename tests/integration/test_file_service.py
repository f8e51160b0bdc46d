"""
Integration tests for file service: upload, trash lifecycle and cleanup.
"""

from datetime import timedelta
from io import BytesIO

import pytest
from fastapi import UploadFile
from sqlalchemy import select

from app.config import settings
from app.core.exceptions import (
    AuthorizationError,
    QuotaExceededError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.timeutil import utcnow
from app.features.files import tasks as file_tasks
from app.features.files.service import DUPLICATE_NAME_MESSAGE, file_service
from app.models import AuditLog, File, FileStatus, FolderStatus, Reminder
from app.schemas.file import FileUpdate
from tests.factories import (
    FileFactory,
    FolderFactory,
    OrganizationFactory,
    ReminderFactory,
    UserFactory,
)


def make_upload(content: bytes = b"hello world", filename: str = "notes.txt") -> UploadFile:
    return UploadFile(file=BytesIO(content), filename=filename, size=len(content))


def stored_blobs(root) -> list:
    return [p for p in root.rglob("*") if p.is_file()]


@pytest.mark.integration
class TestUpload:
    async def test_upload_stores_blob_and_row(self, db_session, member, mock_storage):
        file = await file_service.upload(db_session, member, make_upload(), description="Minutes")

        assert file.name == "notes.txt"
        assert file.file_size == 11
        assert file.file_type == "txt"
        assert file.mime_type == "text/plain"
        assert file.organization_id == member.organization_id
        assert file.uploaded_by == member.id
        assert file.storage_path.startswith(f"organizations/{member.organization_id}/")

        blobs = stored_blobs(mock_storage)
        assert len(blobs) == 1
        assert blobs[0].read_bytes() == b"hello world"

    async def test_display_name_override(self, db_session, member):
        file = await file_service.upload(db_session, member, make_upload(), name="Meeting notes.txt")

        assert file.name == "Meeting notes.txt"
        assert file.original_name == "notes.txt"

    async def test_disallowed_extension(self, db_session, member, mock_storage):
        with pytest.raises(ValidationError) as exc_info:
            await file_service.upload(db_session, member, make_upload(filename="virus.exe"))

        assert exc_info.value.message.startswith("File type not allowed. Allowed types:")
        assert stored_blobs(mock_storage) == []

    async def test_declared_size_over_limit(self, db_session, member, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_size", 5)

        with pytest.raises(ValidationError) as exc_info:
            await file_service.upload(db_session, member, make_upload())
        assert exc_info.value.message.startswith("File too large")

    async def test_duplicate_name_in_same_folder(self, db_session, member):
        await file_service.upload(db_session, member, make_upload())

        with pytest.raises(ValidationError) as exc_info:
            await file_service.upload(db_session, member, make_upload())
        assert exc_info.value.message == DUPLICATE_NAME_MESSAGE

    async def test_same_name_in_other_folder(self, db_session, member, organization):
        folder = await FolderFactory.create(db_session, organization)
        await file_service.upload(db_session, member, make_upload())

        file = await file_service.upload(db_session, member, make_upload(), folder_id=folder.id)
        assert file.folder_id == folder.id

    async def test_folder_of_other_organization(self, db_session, member, other_organization):
        folder = await FolderFactory.create(db_session, other_organization)

        with pytest.raises(ValidationError) as exc_info:
            await file_service.upload(db_session, member, make_upload(), folder_id=folder.id)
        assert exc_info.value.message == "Invalid folder"

    async def test_over_quota_removes_blob(self, db_session, mock_storage):
        org = await OrganizationFactory.create(db_session, storage_quota=0)
        user = await UserFactory.create(db_session, org)

        with pytest.raises(QuotaExceededError):
            await file_service.upload(db_session, user, make_upload())

        assert stored_blobs(mock_storage) == []
        rows = await db_session.execute(select(File.id))
        assert rows.first() is None

    async def test_platform_owner_must_name_organization(self, db_session, platform_owner, organization):
        with pytest.raises(ValidationError):
            await file_service.upload(db_session, platform_owner, make_upload())

        file = await file_service.upload(
            db_session, platform_owner, make_upload(), organization_id=organization.id
        )
        assert file.organization_id == organization.id

    async def test_upload_is_audited(self, db_session, member):
        file = await file_service.upload(db_session, member, make_upload())
        file_id = file.id
        await db_session.commit()

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.resource_id == file_id, AuditLog.action == "CREATE")
        )
        entry = result.scalar_one()
        assert entry.resource_type == "FILE"
        assert '"size": 11' in entry.details


@pytest.mark.integration
class TestReadsAndUpdates:
    async def test_get_foreign_file(self, db_session, member, other_organization):
        foreign = await FileFactory.create(db_session, other_organization)

        with pytest.raises(AuthorizationError):
            await file_service.get_for(db_session, member, foreign.id)

    async def test_get_trashed_file_is_missing(self, db_session, member, organization):
        trashed = await FileFactory.create(
            db_session, organization, member, status=FileStatus.DELETED.value
        )

        with pytest.raises(ResourceNotFoundError):
            await file_service.get_for(db_session, member, trashed.id)

    async def test_download_missing_blob(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)

        with pytest.raises(ResourceNotFoundError) as exc_info:
            await file_service.open_for_download(db_session, member, file.id)
        assert exc_info.value.message == "File not found on disk"

    async def test_download_resolves_path(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member, content=b"data")

        grant = await file_service.open_for_download(db_session, member, file.id)

        assert grant.path.read_bytes() == b"data"

    async def test_member_cannot_rename_others_file(self, db_session, member, org_admin, organization):
        file = await FileFactory.create(db_session, organization, org_admin)

        with pytest.raises(AuthorizationError):
            await file_service.rename(db_session, member, file.id, "mine.pdf")

    async def test_rename_to_taken_name(self, db_session, member, organization):
        await FileFactory.create(db_session, organization, member, original_name="a.pdf")
        second = await FileFactory.create(db_session, organization, member, original_name="b.pdf")

        with pytest.raises(ValidationError):
            await file_service.rename(db_session, member, second.id, "a.pdf")

    async def test_update_moves_to_root_with_empty_folder(self, db_session, member, organization):
        folder = await FolderFactory.create(db_session, organization)
        file = await FileFactory.create(db_session, organization, member, folder_id=folder.id)

        updated = await file_service.update(
            db_session, member, file.id, FileUpdate(folder_id="", description="Moved")
        )

        assert updated.folder_id is None
        assert updated.description == "Moved"

    async def test_list_root_only(self, db_session, member, organization):
        folder = await FolderFactory.create(db_session, organization)
        await FileFactory.create(db_session, organization, member, original_name="top.pdf")
        await FileFactory.create(
            db_session, organization, member, original_name="nested.pdf", folder_id=folder.id
        )

        page = await file_service.list_files(db_session, member, folder_id="root")

        assert [f.name for f in page.items] == ["top.pdf"]
        assert page.total == 1


@pytest.mark.integration
class TestTrash:
    async def test_delete_then_restore(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)

        trashed = await file_service.delete(db_session, member, file.id)
        assert trashed.status == FileStatus.DELETED.value
        assert trashed.deleted_by == member.id

        restored = await file_service.restore(db_session, member, file.id)
        assert restored.status == FileStatus.ACTIVE.value
        assert restored.deleted_at is None

    async def test_delete_twice_is_missing(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)
        await file_service.delete(db_session, member, file.id)

        with pytest.raises(ResourceNotFoundError):
            await file_service.delete(db_session, member, file.id)

    async def test_restore_active_file(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)

        with pytest.raises(ValidationError) as exc_info:
            await file_service.restore(db_session, member, file.id)
        assert exc_info.value.message == "File is not in trash"

    async def test_restore_into_deleted_folder_goes_to_root(self, db_session, member, organization):
        folder = await FolderFactory.create(
            db_session, organization, status=FolderStatus.DELETED.value
        )
        file = await FileFactory.create(
            db_session,
            organization,
            member,
            folder_id=folder.id,
            status=FileStatus.DELETED.value,
            deleted_at=utcnow(),
        )

        restored = await file_service.restore(db_session, member, file.id)

        assert restored.folder_id is None

    async def test_restore_over_quota(self, db_session):
        org = await OrganizationFactory.create(db_session, storage_quota=1)
        user = await UserFactory.create(db_session, org)
        await FileFactory.create(db_session, org, user, file_size=1024 * 1024)
        trashed = await FileFactory.create(
            db_session, org, user, file_size=1, status=FileStatus.DELETED.value
        )
        trashed_id = trashed.id

        with pytest.raises(QuotaExceededError):
            await file_service.restore(db_session, user, trashed_id)

        stored = await db_session.get(File, trashed_id)
        assert stored.status == FileStatus.DELETED.value

    async def test_permanent_delete_removes_everything(self, db_session, member, organization, mock_storage):
        file = await FileFactory.create(
            db_session,
            organization,
            member,
            content=b"bye",
            status=FileStatus.DELETED.value,
        )
        reminder = await ReminderFactory.create(db_session, file, member)
        file_id, reminder_id = file.id, reminder.id

        await file_service.permanent_delete(db_session, member, file_id)
        await db_session.commit()

        assert await db_session.get(File, file_id) is None
        assert await db_session.get(Reminder, reminder_id) is None
        assert stored_blobs(mock_storage) == []

    async def test_permanent_delete_requires_trash(self, db_session, member, organization):
        file = await FileFactory.create(db_session, organization, member)

        with pytest.raises(ValidationError):
            await file_service.permanent_delete(db_session, member, file.id)


@pytest.mark.integration
class TestPurgeTrash:
    async def _trashed(self, db_session, organization, days_ago: int, content: bytes = b"x"):
        return await FileFactory.create(
            db_session,
            organization,
            content=content,
            status=FileStatus.DELETED.value,
            deleted_at=utcnow() - timedelta(days=days_ago),
        )

    async def test_purges_only_expired(self, db_session, organization, mock_storage):
        old = await self._trashed(db_session, organization, days_ago=31, content=b"12345")
        recent = await self._trashed(db_session, organization, days_ago=5)
        active = await FileFactory.create(db_session, organization)
        old_id, recent_id, active_id = old.id, recent.id, active.id

        result = await file_service.purge_trash(db_session, retention_days=30)
        await db_session.commit()

        assert result.purged_count == 1
        assert result.freed_bytes == 5
        assert result.failed_count == 0
        assert await db_session.get(File, old_id) is None
        assert await db_session.get(File, recent_id) is not None
        assert await db_session.get(File, active_id) is not None
        assert len(stored_blobs(mock_storage)) == 1

    async def test_purge_is_audited_as_system(self, db_session, organization):
        await self._trashed(db_session, organization, days_ago=40)

        await file_service.purge_trash(db_session)
        await db_session.commit()

        result = await db_session.execute(select(AuditLog).where(AuditLog.action == "CLEANUP"))
        entry = result.scalar_one()
        assert entry.resource_type == "SYSTEM"
        assert entry.user_id is None
        assert '"purgedCount": 1' in entry.details

    async def test_scheduled_job_commits(self, db_session, organization, monkeypatch):
        old = await self._trashed(db_session, organization, days_ago=31)
        old_id = old.id

        async def fake_sessions():
            yield db_session
            await db_session.commit()

        monkeypatch.setattr(file_tasks.db_manager, "get_session", fake_sessions)

        summary = await file_tasks.purge_trash_async(30)

        assert summary == {"purged_count": 1, "freed_bytes": 1, "failed_count": 0}
        assert await db_session.get(File, old_id) is None


@pytest.mark.integration
class TestStats:
    async def test_stats(self, db_session, member, organization):
        await FileFactory.create(db_session, organization, member, original_name="a.pdf", file_size=100)
        await FileFactory.create(db_session, organization, member, original_name="b.pdf", file_size=50)
        await FileFactory.create(db_session, organization, member, original_name="c.png", file_size=10)
        await FileFactory.create(
            db_session, organization, member, original_name="d.png", status=FileStatus.DELETED.value
        )

        stats = await file_service.stats(db_session, member)

        assert stats.total_files == 3
        assert stats.total_size == 160
        assert stats.by_type[0].file_type == "pdf"
        assert stats.by_type[0].count == 2
        assert stats.recent_uploads == 3
        assert stats.trash_count == 1
        assert stats.quota.used_bytes == 160
