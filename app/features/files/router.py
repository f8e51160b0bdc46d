"""
File management endpoints.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import FileResponse

from app.core.rate_limit import rate_limit
from app.features.auth.dependencies import CurrentUser, DBSession, PlatformOwner
from app.features.files.service import file_service
from app.features.files.sharing import file_share_service
from app.features.files.stars import star_service
from app.features.files.versions import file_version_service
from app.models.starred_item import StarredItemType
from app.schemas.common import APIResponse, Page, ok
from app.schemas.file import (
    CleanupResult,
    FileMove,
    FileRead,
    FileRename,
    FileShareCreate,
    FileShareRead,
    FileStats,
    FileUpdate,
    FileVersionHistory,
    FileVersionRead,
    SharedFileRead,
    StarredItems,
    StarResult,
    TrashedFileRead,
    VersionKeep,
)

router = APIRouter(prefix="/files", tags=["Files"])


@router.get("/", response_model=APIResponse[Page[FileRead]])
async def list_files(
    current_user: CurrentUser,
    db: DBSession,
    q: str | None = Query(None, max_length=255, description="Search name and description"),
    folder_id: str | None = Query(None, description="Folder id, or 'root' for top-level files"),
    file_type: str | None = Query(None, description="Extension, e.g. pdf"),
    mine: bool = Query(False, description="Only files I uploaded"),
    organization_id: str | None = Query(None, description="Platform owners only"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """
    List active files, newest first.

    Regular users see their organization's files; platform owners see
    all files or one organization's.
    """
    result = await file_service.list_files(
        db, current_user, q=q, folder_id=folder_id, file_type=file_type,
        mine=mine, organization_id=organization_id, page=page, limit=limit,
    )
    return ok(Page[FileRead].from_result(result, FileRead))


@router.post(
    "/upload",
    response_model=APIResponse[FileRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("upload"))],
)
async def upload_file(
    current_user: CurrentUser,
    db: DBSession,
    file: UploadFile = File(..., description="File to upload"),
    name: str | None = Form(None, max_length=255, description="Display name (defaults to the filename)"),
    description: str | None = Form(None, max_length=2000),
    folder_id: str | None = Form(None),
    organization_id: str | None = Form(None, description="Required for platform owners"),
):
    """
    Upload a file.

    The extension must be on the allow-list and the size within the
    configured maximum. The organization's storage quota is enforced
    atomically with the upload.
    """
    stored = await file_service.upload(
        db, current_user, file,
        name=name, description=description,
        folder_id=folder_id, organization_id=organization_id,
    )
    return ok(FileRead.model_validate(stored), message="File uploaded successfully")


@router.get("/trash/list", response_model=APIResponse[Page[TrashedFileRead]])
async def list_trash(
    current_user: CurrentUser,
    db: DBSession,
    organization_id: str | None = Query(None, description="Platform owners only"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Files in the trash, most recently deleted first."""
    result = await file_service.list_trash(
        db, current_user, organization_id=organization_id, page=page, limit=limit
    )
    return ok(Page[TrashedFileRead].from_result(result, TrashedFileRead))


@router.get("/stats/overview", response_model=APIResponse[FileStats])
async def file_stats(
    current_user: CurrentUser,
    db: DBSession,
    organization_id: str | None = Query(None, description="Platform owners only"),
):
    """Counts and bytes by type, recent uploads, quota and usage."""
    return ok(await file_service.stats(db, current_user, organization_id=organization_id))


@router.post("/cleanup/old-trash", response_model=APIResponse[CleanupResult])
async def cleanup_old_trash(current_user: PlatformOwner, db: DBSession):
    """Permanently delete files kept in the trash past the retention period."""
    result = await file_service.purge_trash(db, actor=current_user)
    return ok(result, message=f"Purged {result.purged_count} files from trash")


@router.post("/star/{item_type}/{item_id}", response_model=APIResponse[StarResult])
async def toggle_star(item_type: StarredItemType, item_id: str, current_user: CurrentUser, db: DBSession):
    """Star a file or folder, or unstar it if already starred."""
    result = await star_service.toggle(db, current_user, item_type, item_id)
    return ok(result, message="Item starred" if result.starred else "Item unstarred")


@router.get("/starred/list", response_model=APIResponse[StarredItems])
async def list_starred(current_user: CurrentUser, db: DBSession):
    return ok(await star_service.starred(db, current_user))


@router.get("/shared-with-me", response_model=APIResponse[Page[SharedFileRead]])
async def shared_with_me(
    current_user: CurrentUser,
    db: DBSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Files other users shared with me; expired and revoked shares are left out."""
    result = await file_share_service.shared_with_me(db, current_user, page=page, limit=limit)
    return ok(Page[SharedFileRead].from_result(result))


@router.get("/{file_id}", response_model=APIResponse[FileRead])
async def get_file(file_id: str, current_user: CurrentUser, db: DBSession):
    """Get file metadata."""
    stored = await file_service.get_for(db, current_user, file_id)
    return ok(FileRead.model_validate(stored))


@router.get("/{file_id}/download")
async def download_file(file_id: str, current_user: CurrentUser, db: DBSession):
    """Download the file as an attachment."""
    grant = await file_service.open_for_download(db, current_user, file_id)
    return FileResponse(
        grant.path,
        media_type=grant.file.mime_type,
        filename=grant.file.original_name,
    )


@router.get("/{file_id}/preview")
async def preview_file(file_id: str, current_user: CurrentUser, db: DBSession):
    """Stream the file inline for in-browser preview."""
    grant = await file_service.open_for_download(db, current_user, file_id, audit=False)
    return FileResponse(
        grant.path,
        media_type=grant.file.mime_type,
        filename=grant.file.original_name,
        content_disposition_type="inline",
    )


@router.put("/{file_id}", response_model=APIResponse[FileRead])
async def update_file(file_id: str, data: FileUpdate, current_user: CurrentUser, db: DBSession):
    """Update name, description or folder (uploader or admin)."""
    stored = await file_service.update(db, current_user, file_id, data)
    return ok(FileRead.model_validate(stored), message="File updated successfully")


@router.put("/{file_id}/rename", response_model=APIResponse[FileRead])
async def rename_file(file_id: str, data: FileRename, current_user: CurrentUser, db: DBSession):
    stored = await file_service.rename(db, current_user, file_id, data.name)
    return ok(FileRead.model_validate(stored), message="File renamed successfully")


@router.put("/{file_id}/move", response_model=APIResponse[FileRead])
async def move_file(file_id: str, data: FileMove, current_user: CurrentUser, db: DBSession):
    stored = await file_service.move(db, current_user, file_id, data.folder_id)
    return ok(FileRead.model_validate(stored), message="File moved successfully")


@router.delete("/{file_id}", response_model=APIResponse[None])
async def delete_file(file_id: str, current_user: CurrentUser, db: DBSession):
    """Move a file to the trash."""
    await file_service.delete(db, current_user, file_id)
    return ok(message="File moved to trash")


@router.post("/{file_id}/restore", response_model=APIResponse[FileRead])
async def restore_file(file_id: str, current_user: CurrentUser, db: DBSession):
    """Restore a file from the trash (counts against the quota again)."""
    stored = await file_service.restore(db, current_user, file_id)
    return ok(FileRead.model_validate(stored), message="File restored successfully")


@router.delete("/{file_id}/permanent", response_model=APIResponse[None])
async def permanently_delete_file(file_id: str, current_user: CurrentUser, db: DBSession):
    """Delete a trashed file and its blob for good."""
    await file_service.permanent_delete(db, current_user, file_id)
    return ok(message="File permanently deleted")


@router.get("/{file_id}/versions", response_model=APIResponse[FileVersionHistory])
async def list_versions(file_id: str, current_user: CurrentUser, db: DBSession):
    """The current content and archived versions, newest first."""
    return ok(await file_version_service.history(db, current_user, file_id))


@router.post(
    "/{file_id}/versions",
    response_model=APIResponse[FileRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("upload"))],
)
async def upload_version(
    file_id: str,
    current_user: CurrentUser,
    db: DBSession,
    file: UploadFile = File(..., description="New content"),
    version_note: str | None = Form(None, max_length=2000),
):
    """
    Replace the file's content and archive the current one.

    Only the size difference is checked against the quota.
    """
    stored = await file_version_service.upload_version(db, current_user, file_id, file, note=version_note)
    return ok(FileRead.model_validate(stored), message="New version uploaded successfully")


@router.put("/{file_id}/versions/{version_id}/keep", response_model=APIResponse[FileVersionRead])
async def keep_version(
    file_id: str,
    version_id: str,
    current_user: CurrentUser,
    db: DBSession,
    data: VersionKeep | None = None,
):
    """Pin an archived version so it is never pruned."""
    keep = data.keep if data is not None else True
    version = await file_version_service.keep(db, current_user, file_id, version_id, keep=keep)
    message = "Version will be kept forever" if keep else "Version is no longer pinned"
    return ok(FileVersionRead.model_validate(version), message=message)


@router.get("/{file_id}/versions/{version_id}/download")
async def download_version(file_id: str, version_id: str, current_user: CurrentUser, db: DBSession):
    version, grant = await file_version_service.open_version(db, current_user, file_id, version_id)
    return FileResponse(grant.path, media_type=version.mime_type, filename=version.original_name)


@router.post(
    "/{file_id}/share",
    response_model=APIResponse[FileShareRead],
    status_code=status.HTTP_201_CREATED,
)
async def share_file(file_id: str, data: FileShareCreate, current_user: CurrentUser, db: DBSession):
    """Share a file with a user of the same organization (uploader or admin)."""
    share = await file_share_service.share(db, current_user, file_id, data)
    return ok(share, message="File shared successfully")


@router.get("/{file_id}/shares", response_model=APIResponse[list[FileShareRead]])
async def list_shares(file_id: str, current_user: CurrentUser, db: DBSession):
    return ok(await file_share_service.list_shares(db, current_user, file_id))


@router.delete("/{file_id}/shares/{share_id}", response_model=APIResponse[None])
async def revoke_share(file_id: str, share_id: str, current_user: CurrentUser, db: DBSession):
    await file_share_service.revoke(db, current_user, file_id, share_id)
    return ok(message="Share revoked")
