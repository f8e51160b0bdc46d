"""
File sharing within an organization.

Recipients must be active users of the file's organization. Sharing the
same file with the same user again updates the existing share.
"""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, not_found
from app.core.logging_config import get_logger
from app.core.query_helpers import PageResult, QueryBuilder, page_of
from app.core.timeutil import as_utc, utcnow
from app.features.files.service import FileService
from app.models.file import File, FileStatus
from app.models.file_share import FileShare, ShareStatus
from app.models.user import User, UserStatus
from app.schemas.file import FileRead, FileShareCreate, FileShareRead, SharedFileRead

logger = get_logger(__name__)


def _share_read(share: FileShare, recipient: User | None = None) -> FileShareRead:
    read = FileShareRead.model_validate(share)
    if recipient is not None:
        read.shared_with_email = recipient.email
        read.shared_with_name = recipient.full_name
    return read


class FileShareService:
    """Create, list and revoke shares; list files shared with the caller."""

    @staticmethod
    async def share(db: AsyncSession, actor: User, file_id: str, data: FileShareCreate) -> FileShareRead:
        """
        Share a file with a user by email.

        Raises:
            AuthorizationError: Caller is not the uploader or an admin
            ResourceNotFoundError: No active user with that email in the organization
            ValidationError: Sharing with yourself, or an expiry in the past
        """
        file = await FileService._get_active(db, file_id)
        enforce(actor, Action.SHARE_FILE, file)

        result = await db.execute(
            select(User).where(
                func.lower(User.email) == data.email.lower(),
                User.organization_id == file.organization_id,
                User.status == UserStatus.ACTIVE.value,
            )
        )
        recipient = result.scalar_one_or_none()
        if recipient is None:
            raise not_found("User not found")
        if recipient.id == actor.id:
            raise bad_request("Cannot share a file with yourself")

        expires_at = as_utc(data.expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise bad_request("expires_at must be in the future")

        existing = await db.execute(
            select(FileShare).where(
                FileShare.file_id == file.id,
                FileShare.shared_with == recipient.id,
                FileShare.status == ShareStatus.ACTIVE.value,
            )
        )
        share = existing.scalar_one_or_none()
        if share is None:
            share = FileShare(
                file_id=file.id,
                organization_id=file.organization_id,
                shared_with=recipient.id,
                status=ShareStatus.ACTIVE.value,
            )
            db.add(share)
        share.shared_by = actor.id
        share.permission = data.permission.value
        share.expires_at = expires_at
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.SHARE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={
                "sharedWith": recipient.id,
                "permission": share.permission,
                "expiresAt": expires_at,
            },
            actor=actor,
            organization_id=file.organization_id,
        )
        logger.info("file_shared", file_id=file.id, shared_with=recipient.id, permission=share.permission)
        return _share_read(share, recipient)

    @staticmethod
    async def list_shares(db: AsyncSession, actor: User, file_id: str) -> list[FileShareRead]:
        """Active shares of a file, newest first (uploader or admin)."""
        file = await FileService._get_active(db, file_id)
        enforce(actor, Action.SHARE_FILE, file)

        result = await db.execute(
            select(FileShare, User)
            .join(User, User.id == FileShare.shared_with)
            .where(FileShare.file_id == file.id, FileShare.status == ShareStatus.ACTIVE.value)
            .order_by(FileShare.created_at.desc())
        )
        return [_share_read(share, recipient) for share, recipient in result.all()]

    @staticmethod
    async def revoke(db: AsyncSession, actor: User, file_id: str, share_id: str) -> None:
        file = await FileService._get_active(db, file_id)
        enforce(actor, Action.SHARE_FILE, file)

        share = await db.get(FileShare, share_id)
        if share is None or share.file_id != file.id or share.status != ShareStatus.ACTIVE.value:
            raise not_found("Share not found")

        share.status = ShareStatus.REVOKED.value
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.UNSHARE,
            resource_type=ResourceType.FILE,
            resource_id=file.id,
            details={"shareId": share.id, "sharedWith": share.shared_with},
            actor=actor,
            organization_id=file.organization_id,
        )

    @staticmethod
    async def shared_with_me(
        db: AsyncSession,
        actor: User,
        page: int = 1,
        limit: int = 20,
    ) -> PageResult:
        """Active files with a usable share to the caller, most recently shared first."""
        query = (
            select(File, FileShare)
            .join(FileShare, FileShare.file_id == File.id)
            .where(
                FileShare.shared_with == actor.id,
                FileShare.status == ShareStatus.ACTIVE.value,
                or_(FileShare.expires_at.is_(None), FileShare.expires_at > utcnow()),
                File.status == FileStatus.ACTIVE.value,
            )
        )
        result = await (
            QueryBuilder(db, File, query=query)
            .order_by(FileShare.created_at, "desc")
            .paginate(page=page, limit=limit)
            .execute(scalars=False)
        )

        items = [
            SharedFileRead(
                **FileRead.model_validate(file).model_dump(),
                share_id=share.id,
                permission=share.permission,
                shared_by=share.shared_by,
                shared_at=share.created_at,
                expires_at=share.expires_at,
            )
            for file, share in result.items
        ]
        return page_of(items, result.total, result.page, result.limit)


# Singleton instance
file_share_service = FileShareService()
