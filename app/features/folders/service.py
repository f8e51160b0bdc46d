"""
Folder tree business logic.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.audit import AuditAction, ResourceType, audit_recorder
from app.core.exceptions import bad_request, not_found
from app.core.logging_config import get_logger
from app.core.query_helpers import escape_like
from app.core.timeutil import utcnow
from app.features.files.service import FileService
from app.models.file import File, FileStatus
from app.models.folder import Folder, FolderStatus
from app.models.user import User
from app.schemas.folder import FolderCreate, FolderListItem, FolderRead

logger = get_logger(__name__)

DUPLICATE_NAME_MESSAGE = "A folder with this name already exists here"
FOREIGN_FILES_MESSAGE = "Folder contains files you are not allowed to delete"


def _parent_condition(parent_id: str | None):
    if parent_id is None:
        return Folder.parent_id.is_(None)
    return Folder.parent_id == parent_id


class FolderService:
    """Folder service with business logic."""

    @staticmethod
    async def _get_active(db: AsyncSession, folder_id: str) -> Folder:
        folder = await db.get(Folder, folder_id)
        if folder is None or folder.status != FolderStatus.ACTIVE.value:
            raise not_found("Folder not found")
        return folder

    @staticmethod
    async def _validate_parent(db: AsyncSession, organization_id: str, parent_id: str | None) -> str | None:
        if not parent_id:
            return None
        parent = await db.get(Folder, parent_id)
        if (
            parent is None
            or parent.organization_id != organization_id
            or parent.status != FolderStatus.ACTIVE.value
        ):
            raise bad_request("Invalid parent folder")
        return parent.id

    @staticmethod
    async def _ensure_name_free(
        db: AsyncSession,
        organization_id: str,
        parent_id: str | None,
        name: str,
        exclude_id: str | None = None,
    ) -> None:
        query = select(Folder.id).where(
            Folder.organization_id == organization_id,
            _parent_condition(parent_id),
            func.lower(Folder.name) == name.lower(),
            Folder.status == FolderStatus.ACTIVE.value,
        )
        if exclude_id:
            query = query.where(Folder.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise bad_request(DUPLICATE_NAME_MESSAGE)

    @staticmethod
    async def _descendant_ids(db: AsyncSession, folder_id: str) -> set[str]:
        """Ids of every active folder below ``folder_id``."""
        found: set[str] = set()
        frontier = [folder_id]
        while frontier:
            result = await db.execute(
                select(Folder.id).where(
                    Folder.parent_id.in_(frontier),
                    Folder.status == FolderStatus.ACTIVE.value,
                )
            )
            frontier = [fid for fid in result.scalars().all() if fid not in found]
            found.update(frontier)
        return found

    @staticmethod
    async def list_folders(
        db: AsyncSession,
        actor: User,
        parent_id: str | None = None,
        q: str | None = None,
        organization_id: str | None = None,
    ) -> list[FolderListItem]:
        """
        Active folders with their active file counts.

        Without ``q`` this lists one level of the tree (``parent_id``
        omitted for top level); with ``q`` it searches names across the
        whole organization.
        """
        if not actor.is_platform_owner:
            organization_id = actor.organization_id

        file_counts = (
            select(File.folder_id, func.count(File.id).label("file_count"))
            .where(File.status == FileStatus.ACTIVE.value)
            .group_by(File.folder_id)
            .subquery()
        )
        query = (
            select(Folder, file_counts.c.file_count)
            .outerjoin(file_counts, file_counts.c.folder_id == Folder.id)
            .where(Folder.status == FolderStatus.ACTIVE.value)
            .order_by(Folder.name.asc())
        )
        if organization_id:
            query = query.where(Folder.organization_id == organization_id)
        if q:
            query = query.where(Folder.name.ilike(f"%{escape_like(q.strip())}%", escape="\\"))
        else:
            query = query.where(_parent_condition(parent_id))

        rows = await db.execute(query)
        return [
            FolderListItem(**FolderRead.model_validate(folder).model_dump(), file_count=count or 0)
            for folder, count in rows.all()
        ]

    @staticmethod
    async def get_for(db: AsyncSession, actor: User, folder_id: str) -> Folder:
        folder = await FolderService._get_active(db, folder_id)
        enforce(actor, Action.ACCESS_ORGANIZATION, folder)
        return folder

    @staticmethod
    async def create(db: AsyncSession, actor: User, data: FolderCreate) -> Folder:
        organization_id = FileService.resolve_organization(actor, data.organization_id)
        parent_id = await FolderService._validate_parent(db, organization_id, data.parent_id)
        await FolderService._ensure_name_free(db, organization_id, parent_id, data.name)

        folder = Folder(
            name=data.name,
            description=data.description,
            organization_id=organization_id,
            parent_id=parent_id,
            created_by=actor.id,
            status=FolderStatus.ACTIVE.value,
        )
        db.add(folder)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.CREATE,
            resource_type=ResourceType.FOLDER,
            resource_id=folder.id,
            details={"name": folder.name, "parentId": parent_id},
            actor=actor,
            organization_id=organization_id,
        )
        return folder

    @staticmethod
    async def rename(db: AsyncSession, actor: User, folder_id: str, name: str) -> Folder:
        folder = await FolderService._get_active(db, folder_id)
        enforce(actor, Action.MODIFY_FOLDER, folder)
        await FolderService._ensure_name_free(
            db, folder.organization_id, folder.parent_id, name, exclude_id=folder.id
        )

        old_name = folder.name
        folder.name = name
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.RENAME,
            resource_type=ResourceType.FOLDER,
            resource_id=folder.id,
            details={"oldName": old_name, "newName": name},
            actor=actor,
            organization_id=folder.organization_id,
        )
        return folder

    @staticmethod
    async def move(db: AsyncSession, actor: User, folder_id: str, parent_id: str | None) -> Folder:
        """
        Re-parent a folder.

        Raises:
            ValidationError: Target is the folder itself or one of its descendants
        """
        folder = await FolderService._get_active(db, folder_id)
        enforce(actor, Action.MODIFY_FOLDER, folder)

        if parent_id and (
            parent_id == folder.id
            or parent_id in await FolderService._descendant_ids(db, folder.id)
        ):
            raise bad_request("Cannot move a folder into itself or one of its subfolders")

        new_parent = await FolderService._validate_parent(db, folder.organization_id, parent_id)
        await FolderService._ensure_name_free(
            db, folder.organization_id, new_parent, folder.name, exclude_id=folder.id
        )

        old_parent = folder.parent_id
        folder.parent_id = new_parent
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.MOVE,
            resource_type=ResourceType.FOLDER,
            resource_id=folder.id,
            details={"fromParentId": old_parent, "toParentId": new_parent},
            actor=actor,
            organization_id=folder.organization_id,
        )
        return folder

    @staticmethod
    async def delete(db: AsyncSession, actor: User, folder_id: str) -> bool:
        """
        Delete a folder.

        An empty folder row is removed. A folder that still holds files or
        subfolders is soft-deleted together with its subtree, and the files
        inside go to the trash (restoring one later puts it at the root).
        Trashing those files needs the same rights as deleting each one, so
        a member cannot clear out a folder holding other people's files.

        Returns:
            True when the row was removed, False when soft-deleted

        Raises:
            AuthorizationError: Caller may not delete the folder or one of its files
        """
        folder = await FolderService._get_active(db, folder_id)
        enforce(actor, Action.MODIFY_FOLDER, folder)

        subtree = await FolderService._descendant_ids(db, folder.id)
        folder_ids = [folder.id, *subtree]
        contained = (await db.execute(
            select(File).where(
                File.folder_id.in_(folder_ids),
                File.status == FileStatus.ACTIVE.value,
            )
        )).scalars().all()
        for file in contained:
            enforce(actor, Action.MODIFY_FILE, file, message=FOREIGN_FILES_MESSAGE)

        details = {"name": folder.name, "subfolders": len(subtree), "files": len(contained)}
        organization_id = folder.organization_id
        hard = not subtree and not contained

        if hard:
            await db.execute(
                update(File).where(File.folder_id == folder.id).values(folder_id=None)
            )
            await db.delete(folder)
        else:
            now = utcnow()
            await db.execute(
                update(Folder)
                .where(Folder.id.in_(folder_ids))
                .values(status=FolderStatus.DELETED.value, deleted_at=now, deleted_by=actor.id)
            )
            for file in contained:
                file.move_to_trash(actor.id)
        await db.flush()

        await audit_recorder.record(
            db,
            action=AuditAction.DELETE,
            resource_type=ResourceType.FOLDER,
            resource_id=folder_id,
            details={**details, "permanent": hard},
            actor=actor,
            organization_id=organization_id,
        )
        logger.info("folder_deleted", folder_id=folder_id, permanent=hard)
        return hard


# Singleton instance
folder_service = FolderService()
