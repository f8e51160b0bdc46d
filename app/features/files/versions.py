"""
File version history.

A new version replaces the file's blob; the replaced content is archived
as a ``FileVersion`` row that keeps its own blob. Only the live content
counts against the quota, so the quota check admits the size difference.
Unpinned versions beyond ``MAX_FILE_VERSIONS`` are pruned oldest first.
"""

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.access import FileGrant, grant_file_access, resolve_storage_path
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, not_found
from app.core.logging_config import get_logger
from app.core.performance import PerformanceMonitor
from app.core.quota import quota_accountant
from app.features.files.service import FileService
from app.features.files.storage import (
    file_extension,
    format_size,
    generate_file_path,
    get_mime_type,
    get_storage,
    validate_file_extension,
)
from app.models.file import File
from app.models.file_version import FileVersion
from app.models.user import User
from app.schemas.file import CurrentVersionRead, FileVersionHistory, FileVersionRead

logger = get_logger(__name__)


class FileVersionService:
    """Version listing, upload, pinning and download."""

    @staticmethod
    async def _versions(db: AsyncSession, file_id: str) -> list[FileVersion]:
        result = await db.execute(
            select(FileVersion)
            .where(FileVersion.file_id == file_id)
            .order_by(FileVersion.version_number.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def _get_version(db: AsyncSession, file: File, version_id: str) -> FileVersion:
        version = await db.get(FileVersion, version_id)
        if version is None or version.file_id != file.id:
            raise not_found("Version not found")
        return version

    @staticmethod
    async def history(db: AsyncSession, actor: User, file_id: str) -> FileVersionHistory:
        file = await FileService.get_for(db, actor, file_id)
        versions = await FileVersionService._versions(db, file.id)
        return FileVersionHistory(
            file_id=file.id,
            current=CurrentVersionRead(
                version_number=file.current_version,
                original_name=file.original_name,
                file_size=file.file_size,
                mime_type=file.mime_type,
                updated_at=file.updated_at,
            ),
            versions=[FileVersionRead.model_validate(v) for v in versions],
        )

    @staticmethod
    async def upload_version(
        db: AsyncSession,
        actor: User,
        file_id: str,
        upload: UploadFile,
        note: str | None = None,
    ) -> File:
        """
        Replace a file's content, archiving the current one.

        Raises:
            ValidationError: Disallowed type or too large
            AuthorizationError: Caller may not edit the file
            QuotaExceededError: The size increase does not fit (new blob removed)
        """
        file = await FileService._get_active(db, file_id)
        await FileService.enforce_edit(db, actor, file)

        original_name = upload.filename or ""
        if not validate_file_extension(original_name):
            allowed = ", ".join(sorted(settings.allowed_extensions))
            raise bad_request(f"File type not allowed. Allowed types: {allowed}")
        if upload.size is not None and upload.size > settings.max_upload_size:
            raise bad_request(f"File too large. Maximum size is {format_size(settings.max_upload_size)}")

        storage = get_storage()
        storage_path = generate_file_path(file.organization_id, original_name)
        previous_size = file.file_size
        pruned: list[str] = []

        async with PerformanceMonitor("file_version_upload", organization_id=file.organization_id):
            size = await storage.save_upload(upload, storage_path, settings.max_upload_size)

            async def remove_blob() -> None:
                await storage.delete(storage_path)

            async with quota_accountant.reserve(
                db, file.organization_id, size - previous_size, cleanup=remove_blob
            ):
                db.add(
                    FileVersion(
                        file_id=file.id,
                        version_number=file.current_version,
                        original_name=file.original_name,
                        storage_path=file.storage_path,
                        file_size=file.file_size,
                        mime_type=file.mime_type,
                        replaced_by=actor.id,
                        version_note=note,
                    )
                )
                file.storage_path = storage_path
                file.original_name = original_name
                file.file_size = size
                file.file_type = file_extension(original_name)
                file.mime_type = get_mime_type(original_name)
                file.current_version += 1
                await db.flush()

                pruned = await FileVersionService._prune(db, file.id)

        # Blobs go only after the rows are committed
        for path in pruned:
            await storage.delete(path)

        await audit_recorder.record(
            db,
            action=AuditAction.VERSION,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={
                "version": file.current_version,
                "size": size,
                "previousSize": previous_size,
                "note": note,
                "prunedCount": len(pruned),
            },
            actor=actor,
            organization_id=file.organization_id,
        )
        logger.info("file_version_uploaded", file_id=file.id, version=file.current_version, size=size)
        return file

    @staticmethod
    async def _prune(db: AsyncSession, file_id: str) -> list[str]:
        """Drop unpinned versions past the limit; returns their blob paths."""
        result = await db.execute(
            select(FileVersion)
            .where(FileVersion.file_id == file_id, FileVersion.keep_forever.is_(False))
            .order_by(FileVersion.version_number.desc())
            .offset(settings.max_file_versions)
        )
        paths = []
        for version in result.scalars().all():
            paths.append(version.storage_path)
            await db.delete(version)
        if paths:
            await db.flush()
        return paths

    @staticmethod
    async def keep(db: AsyncSession, actor: User, file_id: str, version_id: str, keep: bool = True) -> FileVersion:
        """Pin a version so pruning never removes it (or unpin it)."""
        file = await FileService._get_active(db, file_id)
        await FileService.enforce_edit(db, actor, file)
        version = await FileVersionService._get_version(db, file, version_id)

        version.keep_forever = keep
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.UPDATE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"versionNumber": version.version_number, "keepForever": keep},
            actor=actor,
            organization_id=file.organization_id,
        )
        return version

    @staticmethod
    async def open_version(db: AsyncSession, actor: User, file_id: str, version_id: str) -> tuple[FileVersion, FileGrant]:
        file = await FileService._get_active(db, file_id)
        grant = grant_file_access(actor, file)
        version = await FileVersionService._get_version(db, file, version_id)

        path = resolve_storage_path(version.storage_path)
        if not path.exists():
            logger.error("blob_missing", file_id=file.id, version=version.version_number)
            raise not_found("File not found on disk")

        await audit_recorder.record(
            db,
            action=AuditAction.DOWNLOAD,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"name": file.name, "version": version.version_number},
            actor=actor,
            organization_id=file.organization_id,
        )
        return version, FileGrant(file=grant.file, path=path)


# Singleton instance
file_version_service = FileVersionService()
