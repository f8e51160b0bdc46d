"""
Starred files and folders.

Stars are private to the user. Items in the trash keep their star but
drop out of the starred list until restored.
"""

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.logging_config import get_logger
from app.features.files.service import FileService
from app.features.folders.service import FolderService
from app.models.file import File, FileStatus
from app.models.folder import Folder, FolderStatus
from app.models.starred_item import StarredItem, StarredItemType
from app.models.user import User
from app.schemas.file import FileRead, StarredItems, StarResult
from app.schemas.folder import FolderRead

logger = get_logger(__name__)


class StarService:

    @staticmethod
    async def toggle(db: AsyncSession, actor: User, item_type: StarredItemType, item_id: str) -> StarResult:
        """
        Star an item, or unstar it if already starred.

        Raises:
            ResourceNotFoundError: Item missing or in trash
            AuthorizationError: Item belongs to another organization
        """
        if item_type == StarredItemType.FILE:
            await FileService.get_for(db, actor, item_id)
        else:
            folder = await FolderService._get_active(db, item_id)
            enforce(actor, Action.ACCESS_ORGANIZATION, folder)

        result = await db.execute(
            select(StarredItem).where(
                StarredItem.user_id == actor.id,
                StarredItem.item_type == item_type.value,
                StarredItem.item_id == item_id,
            )
        )
        star = result.scalar_one_or_none()
        if star is not None:
            await db.delete(star)
        else:
            db.add(StarredItem(user_id=actor.id, item_type=item_type.value, item_id=item_id))
        await db.flush()

        logger.debug("star_toggled", item_type=item_type.value, item_id=item_id, starred=star is None)
        return StarResult(item_type=item_type, item_id=item_id, starred=star is None)

    @staticmethod
    async def starred(db: AsyncSession, actor: User) -> StarredItems:
        """The caller's starred active files and folders, most recently starred first."""
        def starred_by_actor(model, item_type: StarredItemType):
            return (
                select(model)
                .join(
                    StarredItem,
                    and_(StarredItem.item_id == model.id, StarredItem.item_type == item_type.value),
                )
                .where(StarredItem.user_id == actor.id)
                .order_by(StarredItem.created_at.desc())
            )

        files_query = starred_by_actor(File, StarredItemType.FILE).where(File.status == FileStatus.ACTIVE.value)
        folders_query = starred_by_actor(Folder, StarredItemType.FOLDER).where(
            Folder.status == FolderStatus.ACTIVE.value
        )
        if not actor.is_platform_owner:
            files_query = files_query.where(File.organization_id == actor.organization_id)
            folders_query = folders_query.where(Folder.organization_id == actor.organization_id)

        files = (await db.execute(files_query)).scalars().all()
        folders = (await db.execute(folders_query)).scalars().all()
        return StarredItems(
            files=[FileRead.model_validate(f) for f in files],
            folders=[FolderRead.model_validate(f) for f in folders],
        )


# Singleton instance
star_service = StarService()
