"""
File management business logic.

Uploads go through the quota accountant: the blob is streamed to disk
first (size bound enforced while streaming), then the quota check and
metadata insert run serialized per organization. Every failure after the
blob exists removes it.
"""

from datetime import timedelta

from fastapi import UploadFile
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.access import Action, FileGrant, authorize, enforce, grant_file_access
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, not_found
from app.core.logging_config import get_logger
from app.core.metrics import files_uploaded_total, trash_files_purged_total, upload_bytes_total
from app.core.performance import PerformanceMonitor
from app.core.query_helpers import PageResult, QueryBuilder
from app.core.quota import quota_accountant
from app.core.timeutil import utcnow
from app.features.files.storage import (
    file_extension,
    format_size,
    generate_file_path,
    get_mime_type,
    get_storage,
    validate_file_extension,
)
from app.models.file import File, FileStatus
from app.models.file_share import FileShare, SharePermission, ShareStatus
from app.models.file_version import FileVersion
from app.models.folder import Folder, FolderStatus
from app.models.organization import Organization
from app.models.reminder import Reminder
from app.models.starred_item import StarredItem, StarredItemType
from app.models.user import User
from app.schemas.file import CleanupResult, FileStats, FileUpdate, QuotaRead, TypeBreakdown

logger = get_logger(__name__)

DUPLICATE_NAME_MESSAGE = "A file with this name already exists in this folder"
ROOT_FOLDER = "root"


def _folder_condition(folder_id: str | None):
    if folder_id is None:
        return File.folder_id.is_(None)
    return File.folder_id == folder_id


class FileService:
    """File management service."""

    @staticmethod
    def resolve_organization(actor: User, organization_id: str | None = None) -> str:
        """
        Organization a file operation targets.

        Regular users always act in their own organization; platform owners
        must say which one.
        """
        if actor.is_platform_owner:
            if not organization_id:
                raise bad_request("organization_id is required")
            return organization_id
        enforce(actor, Action.ACCESS_ORGANIZATION, organization_id or actor.organization_id)
        return actor.organization_id

    @staticmethod
    async def _validate_folder(db: AsyncSession, organization_id: str, folder_id: str | None) -> str | None:
        if not folder_id:
            return None
        folder = await db.get(Folder, folder_id)
        if (
            folder is None
            or folder.organization_id != organization_id
            or folder.status != FolderStatus.ACTIVE.value
        ):
            raise bad_request("Invalid folder")
        return folder.id

    @staticmethod
    async def _ensure_name_free(
        db: AsyncSession,
        organization_id: str,
        folder_id: str | None,
        name: str,
        exclude_id: str | None = None,
    ) -> None:
        query = select(File.id).where(
            File.organization_id == organization_id,
            _folder_condition(folder_id),
            File.name == name,
            File.status == FileStatus.ACTIVE.value,
        )
        if exclude_id:
            query = query.where(File.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise bad_request(DUPLICATE_NAME_MESSAGE)

    # Upload ---------------------------------------------------------------

    @staticmethod
    async def upload(
        db: AsyncSession,
        actor: User,
        upload: UploadFile,
        name: str | None = None,
        description: str | None = None,
        folder_id: str | None = None,
        organization_id: str | None = None,
    ) -> File:
        """
        Store an uploaded file.

        Order of checks: extension, declared size, folder, duplicate
        name, then the blob is written and the quota accountant admits
        or rejects it.

        Raises:
            ValidationError: Disallowed type, too large, bad folder, duplicate name
            QuotaExceededError: Organization over quota (blob removed)
        """
        organization_id = FileService.resolve_organization(actor, organization_id)

        original_name = upload.filename or ""
        if not validate_file_extension(original_name):
            allowed = ", ".join(sorted(settings.allowed_extensions))
            raise bad_request(f"File type not allowed. Allowed types: {allowed}")

        if upload.size is not None and upload.size > settings.max_upload_size:
            raise bad_request(f"File too large. Maximum size is {format_size(settings.max_upload_size)}")

        folder_id = await FileService._validate_folder(db, organization_id, folder_id)
        display_name = (name or original_name).strip()
        await FileService._ensure_name_free(db, organization_id, folder_id, display_name)

        storage = get_storage()
        storage_path = generate_file_path(organization_id, original_name)

        async with PerformanceMonitor("file_upload", organization_id=organization_id):
            size = await storage.save_upload(upload, storage_path, settings.max_upload_size)

            async def remove_blob() -> None:
                await storage.delete(storage_path)

            async with quota_accountant.reserve(db, organization_id, size, cleanup=remove_blob):
                await FileService._ensure_name_free(db, organization_id, folder_id, display_name)
                file = File(
                    name=display_name,
                    original_name=original_name,
                    description=description,
                    storage_path=storage_path,
                    file_size=size,
                    file_type=file_extension(original_name),
                    mime_type=get_mime_type(original_name),
                    organization_id=organization_id,
                    uploaded_by=actor.id,
                    folder_id=folder_id,
                    status=FileStatus.ACTIVE.value,
                )
                db.add(file)
                await db.flush()

        files_uploaded_total.labels(organization_id=organization_id).inc()
        upload_bytes_total.inc(size)

        await audit_recorder.record(
            db,
            action=AuditAction.CREATE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"name": file.name, "size": size, "folderId": folder_id},
            actor=actor,
            organization_id=organization_id,
        )

        logger.info("file_uploaded", file_id=file.id, organization_id=organization_id, size=size)
        return file

    # Reads ----------------------------------------------------------------

    @staticmethod
    async def list_files(
        db: AsyncSession,
        actor: User,
        q: str | None = None,
        folder_id: str | None = None,
        file_type: str | None = None,
        mine: bool = False,
        organization_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult:
        """Active files, newest first. ``folder_id='root'`` selects top-level files."""
        if not actor.is_platform_owner:
            organization_id = actor.organization_id

        builder = (
            QueryBuilder(db, File)
            .filter(File.status == FileStatus.ACTIVE.value)
            .filter_if(organization_id, File.organization_id == organization_id)
            .filter_if(file_type, File.file_type == (file_type or "").lower().lstrip("."))
            .search(q, File.name, File.description)
        )
        if folder_id == ROOT_FOLDER:
            builder.filter(File.folder_id.is_(None))
        elif folder_id:
            builder.filter(File.folder_id == folder_id)
        if mine:
            builder.filter(File.uploaded_by == actor.id)

        async with PerformanceMonitor("list_files", organization_id=organization_id):
            return await (
                builder
                .order_by(File.created_at, "desc")
                .paginate(page=page, limit=limit)
                .execute()
            )

    @staticmethod
    async def _get_active(db: AsyncSession, file_id: str) -> File:
        file = await db.get(File, file_id)
        if file is None or file.status != FileStatus.ACTIVE.value:
            raise not_found("File not found")
        return file

    @staticmethod
    async def _get_any(db: AsyncSession, file_id: str) -> File:
        file = await db.get(File, file_id)
        if file is None:
            raise not_found("File not found")
        return file

    @staticmethod
    async def get_for(db: AsyncSession, actor: User, file_id: str) -> File:
        """
        Read one file.

        404 when missing or in trash, 403 when it belongs to another
        organization.
        """
        file = await FileService._get_active(db, file_id)
        grant_file_access(actor, file)
        return file

    @staticmethod
    async def open_for_download(
        db: AsyncSession,
        actor: User,
        file_id: str,
        audit: bool = True,
    ) -> FileGrant:
        """Resolve an accessible file's blob; 404 if the blob is gone."""
        file = await FileService._get_active(db, file_id)
        grant = grant_file_access(actor, file)

        if not grant.path.exists():
            logger.error("blob_missing", file_id=file.id, path=file.storage_path)
            raise not_found("File not found on disk")

        if audit:
            await audit_recorder.record(
                db,
                action=AuditAction.DOWNLOAD,
                resource_type=ResourceType.FILE,
                resource_id=file.id,
                details={"name": file.name},
                actor=actor,
                organization_id=file.organization_id,
            )
        return grant

    # Updates --------------------------------------------------------------

    @staticmethod
    async def enforce_edit(db: AsyncSession, actor: User, file: File) -> None:
        """
        Uploader, admin, or a holder of a usable ``edit`` share.

        Raises:
            AuthorizationError: None of the above
        """
        decision = authorize(actor, Action.MODIFY_FILE, file)
        if decision:
            return

        result = await db.execute(
            select(FileShare).where(
                FileShare.file_id == file.id,
                FileShare.shared_with == actor.id,
                FileShare.permission == SharePermission.EDIT.value,
                FileShare.status == ShareStatus.ACTIVE.value,
            )
        )
        share = next((s for s in result.scalars().all() if s.is_usable), None)
        enforce(actor, Action.EDIT_SHARED_FILE, share, message=decision.reason)

    @staticmethod
    async def update(db: AsyncSession, actor: User, file_id: str, data: FileUpdate) -> File:
        file = await FileService._get_active(db, file_id)
        await FileService.enforce_edit(db, actor, file)

        changes = data.model_dump(exclude_unset=True)
        new_folder = file.folder_id
        if "folder_id" in changes:
            new_folder = await FileService._validate_folder(
                db, file.organization_id, changes["folder_id"] or None
            )
        new_name = changes.get("name") or file.name

        if new_name != file.name or new_folder != file.folder_id:
            await FileService._ensure_name_free(
                db, file.organization_id, new_folder, new_name, exclude_id=file.id
            )

        file.name = new_name
        file.folder_id = new_folder
        if "description" in changes:
            file.description = changes["description"]
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.UPDATE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details=changes,
            actor=actor,
            organization_id=file.organization_id,
        )
        return file

    @staticmethod
    async def rename(db: AsyncSession, actor: User, file_id: str, name: str) -> File:
        file = await FileService._get_active(db, file_id)
        await FileService.enforce_edit(db, actor, file)

        old_name = file.name
        await FileService._ensure_name_free(
            db, file.organization_id, file.folder_id, name, exclude_id=file.id
        )
        file.name = name
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.RENAME,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"oldName": old_name, "newName": name},
            actor=actor,
            organization_id=file.organization_id,
        )
        return file

    @staticmethod
    async def move(db: AsyncSession, actor: User, file_id: str, folder_id: str | None) -> File:
        file = await FileService._get_active(db, file_id)
        await FileService.enforce_edit(db, actor, file)

        old_folder = file.folder_id
        new_folder = await FileService._validate_folder(db, file.organization_id, folder_id)
        await FileService._ensure_name_free(
            db, file.organization_id, new_folder, file.name, exclude_id=file.id
        )
        file.folder_id = new_folder
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.MOVE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"fromFolderId": old_folder, "toFolderId": new_folder},
            actor=actor,
            organization_id=file.organization_id,
        )
        return file

    # Trash ----------------------------------------------------------------

    @staticmethod
    async def delete(db: AsyncSession, actor: User, file_id: str) -> File:
        """Move an active file to the trash. Deleting twice is a 404."""
        file = await FileService._get_active(db, file_id)
        enforce(actor, Action.MODIFY_FILE, file)

        file.move_to_trash(actor.id)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.DELETE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"name": file.name, "size": file.file_size},
            actor=actor,
            organization_id=file.organization_id,
        )
        logger.info("file_trashed", file_id=file.id)
        return file

    @staticmethod
    async def list_trash(
        db: AsyncSession,
        actor: User,
        organization_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult:
        if not actor.is_platform_owner:
            organization_id = actor.organization_id

        return await (
            QueryBuilder(db, File)
            .filter(File.status == FileStatus.DELETED.value)
            .filter_if(organization_id, File.organization_id == organization_id)
            .order_by(File.deleted_at, "desc")
            .paginate(page=page, limit=limit)
            .execute()
        )

    @staticmethod
    async def _get_trashed(db: AsyncSession, actor: User, file_id: str) -> File:
        file = await FileService._get_any(db, file_id)
        enforce(actor, Action.MODIFY_FILE, file)
        if file.status != FileStatus.DELETED.value:
            raise bad_request("File is not in trash")
        return file

    @staticmethod
    async def restore(db: AsyncSession, actor: User, file_id: str) -> File:
        """
        Bring a file back from the trash.

        The file counts against the quota again, so restoring goes through
        the same serialized check as an upload. If its folder is gone it is
        restored to the root.
        """
        file = await FileService._get_trashed(db, actor, file_id)

        folder = await db.get(Folder, file.folder_id) if file.folder_id else None
        target_folder = folder.id if folder and folder.status == FolderStatus.ACTIVE.value else None
        await FileService._ensure_name_free(db, file.organization_id, target_folder, file.name)

        async with quota_accountant.reserve(db, file.organization_id, file.file_size):
            file.take_out_of_trash()
            file.folder_id = target_folder
            await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.RESTORE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"name": file.name},
            actor=actor,
            organization_id=file.organization_id,
        )
        return file

    @staticmethod
    async def _purge(db: AsyncSession, file: File) -> None:
        """Remove blobs of every version, dependent rows and the file row."""
        versions = await db.execute(select(FileVersion.storage_path).where(FileVersion.file_id == file.id))
        storage = get_storage()
        await storage.delete(file.storage_path)
        for storage_path in versions.scalars().all():
            await storage.delete(storage_path)

        await db.execute(delete(FileVersion).where(FileVersion.file_id == file.id))
        await db.execute(delete(FileShare).where(FileShare.file_id == file.id))
        await db.execute(
            delete(StarredItem).where(
                StarredItem.item_type == StarredItemType.FILE.value,
                StarredItem.item_id == file.id,
            )
        )
        await db.execute(delete(Reminder).where(Reminder.file_id == file.id))
        await db.delete(file)

    @staticmethod
    async def permanent_delete(db: AsyncSession, actor: User, file_id: str) -> None:
        file = await FileService._get_trashed(db, actor, file_id)
        details = {"name": file.name, "size": file.file_size}
        organization_id = file.organization_id

        await FileService._purge(db, file)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.PERMANENT_DELETE,
            resource_type=ResourceType.FILE,
            resource_id=file_id,
            details=details,
            actor=actor,
            organization_id=organization_id,
        )
        logger.info("file_purged", file_id=file_id)

    @staticmethod
    async def purge_trash(
        db: AsyncSession,
        actor: User | None = None,
        retention_days: int | None = None,
    ) -> CleanupResult:
        """
        Permanently delete files trashed longer than the retention period.

        Backs both the cleanup endpoint and the scheduled job.
        """
        retention_days = retention_days if retention_days is not None else settings.trash_retention_days
        cutoff = utcnow() - timedelta(days=retention_days)

        result = await db.execute(
            select(File).where(
                File.status == FileStatus.DELETED.value,
                File.deleted_at < cutoff,
            )
        )
        purged = failed = freed = 0
        for file in result.scalars().all():
            try:
                size = file.file_size
                await FileService._purge(db, file)
                await db.flush()
            except OSError as e:
                failed += 1
                logger.error("trash_purge_failed", file_id=file.id, error=str(e))
                continue
            purged += 1
            freed += size

        trash_files_purged_total.inc(purged)

        await audit_recorder.record(
            db,
            action=AuditAction.CLEANUP,
            resource_type=ResourceType.SYSTEM,
            details={
                "retentionDays": retention_days,
                "purgedCount": purged,
                "freedBytes": freed,
                "failedCount": failed,
            },
            actor=actor,
            organization_id=None,
        )
        logger.info("trash_purged", purged=purged, freed_bytes=freed, failed=failed)
        return CleanupResult(purged_count=purged, freed_bytes=freed, failed_count=failed)

    # Stats ----------------------------------------------------------------

    @staticmethod
    async def stats(db: AsyncSession, actor: User, organization_id: str | None = None) -> FileStats:
        if not actor.is_platform_owner:
            organization_id = actor.organization_id

        scope = [File.organization_id == organization_id] if organization_id else []
        active = [*scope, File.status == FileStatus.ACTIVE.value]

        async with PerformanceMonitor("file_stats", organization_id=organization_id):
            by_type_rows = await db.execute(
                select(File.file_type, func.count(File.id), func.coalesce(func.sum(File.file_size), 0))
                .where(*active)
                .group_by(File.file_type)
                .order_by(func.count(File.id).desc())
            )
            by_type = [
                TypeBreakdown(file_type=file_type, count=count, total_size=int(total))
                for file_type, count, total in by_type_rows.all()
            ]
            recent = await db.execute(
                select(func.count(File.id)).where(
                    *active, File.created_at >= utcnow() - timedelta(days=7)
                )
            )
            trash = await db.execute(
                select(func.count(File.id)).where(*scope, File.status == FileStatus.DELETED.value)
            )

            quota = None
            if organization_id:
                organization = await db.get(Organization, organization_id)
                if organization is not None:
                    usage = await quota_accountant.usage(db, organization)
                    quota = QuotaRead(
                        quota_bytes=usage.quota_bytes,
                        used_bytes=usage.used_bytes,
                        available_bytes=usage.available_bytes,
                        usage_percentage=usage.usage_percentage,
                    )

        return FileStats(
            total_files=sum(t.count for t in by_type),
            total_size=sum(t.total_size for t in by_type),
            by_type=by_type,
            recent_uploads=recent.scalar_one(),
            trash_count=trash.scalar_one(),
            quota=quota,
        )


# Singleton instance
file_service = FileService()
