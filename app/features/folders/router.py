"""
Folder endpoints.
"""

from fastapi import APIRouter, Query, status

from app.features.auth.dependencies import CurrentUser, DBSession
from app.features.folders.service import folder_service
from app.schemas.common import APIResponse, ok
from app.schemas.folder import FolderCreate, FolderListItem, FolderMove, FolderRead, FolderRename

router = APIRouter(prefix="/folders", tags=["Folders"])


@router.get("/", response_model=APIResponse[list[FolderListItem]])
async def list_folders(
    current_user: CurrentUser,
    db: DBSession,
    parent_id: str | None = Query(None, description="Omit for top-level folders"),
    q: str | None = Query(None, max_length=255, description="Search folder names"),
    organization_id: str | None = Query(None, description="Platform owners only"),
):
    folders = await folder_service.list_folders(
        db, current_user, parent_id=parent_id, q=q, organization_id=organization_id
    )
    return ok(folders)


@router.post("/", response_model=APIResponse[FolderRead], status_code=status.HTTP_201_CREATED)
async def create_folder(data: FolderCreate, current_user: CurrentUser, db: DBSession):
    folder = await folder_service.create(db, current_user, data)
    return ok(FolderRead.model_validate(folder), message="Folder created successfully")


@router.get("/{folder_id}", response_model=APIResponse[FolderRead])
async def get_folder(folder_id: str, current_user: CurrentUser, db: DBSession):
    folder = await folder_service.get_for(db, current_user, folder_id)
    return ok(FolderRead.model_validate(folder))


@router.put("/{folder_id}/rename", response_model=APIResponse[FolderRead])
async def rename_folder(folder_id: str, data: FolderRename, current_user: CurrentUser, db: DBSession):
    folder = await folder_service.rename(db, current_user, folder_id, data.name)
    return ok(FolderRead.model_validate(folder), message="Folder renamed successfully")


@router.put("/{folder_id}/move", response_model=APIResponse[FolderRead])
async def move_folder(folder_id: str, data: FolderMove, current_user: CurrentUser, db: DBSession):
    """Move a folder under another parent (null for top level)."""
    folder = await folder_service.move(db, current_user, folder_id, data.parent_id)
    return ok(FolderRead.model_validate(folder), message="Folder moved successfully")


@router.delete("/{folder_id}", response_model=APIResponse[None])
async def delete_folder(folder_id: str, current_user: CurrentUser, db: DBSession):
    """Delete an empty folder, or move a non-empty one and its files to the trash."""
    removed = await folder_service.delete(db, current_user, folder_id)
    message = "Folder deleted successfully" if removed else "Folder and its contents moved to trash"
    return ok(message=message)
