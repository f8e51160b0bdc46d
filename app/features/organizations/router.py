"""
Organization management endpoints.
"""

from fastapi import APIRouter, Query, status

from app.features.auth.dependencies import AdminUser, CurrentUser, DBSession, PlatformOwner
from app.features.organizations.service import organization_service
from app.models.organization import OrganizationStatus
from app.schemas.common import APIResponse, Page, ok
from app.schemas.organization import (
    OrganizationCreate,
    OrganizationDetail,
    OrganizationRead,
    OrganizationStats,
    OrganizationUpdate,
)
from app.schemas.user import UserRead

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.get("/", response_model=APIResponse[Page[OrganizationDetail]])
async def list_organizations(
    current_user: PlatformOwner,
    db: DBSession,
    q: str | None = Query(None, max_length=100),
    status: OrganizationStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """List all organizations (platform owner only)."""
    result = await organization_service.list_organizations(
        db, current_user, q=q, status=status, page=page, limit=limit
    )
    return ok(Page[OrganizationDetail].from_result(result))


@router.get("/stats/overview", response_model=APIResponse[OrganizationStats])
async def organization_stats(current_user: PlatformOwner, db: DBSession):
    """Platform totals and the organizations using the most storage."""
    return ok(await organization_service.stats(db, current_user))


@router.post("/", response_model=APIResponse[OrganizationRead], status_code=status.HTTP_201_CREATED)
async def create_organization(data: OrganizationCreate, current_user: PlatformOwner, db: DBSession):
    """Create an organization (platform owner only)."""
    organization = await organization_service.create(db, current_user, data)
    return ok(OrganizationRead.model_validate(organization), message="Organization created successfully")


@router.get("/{organization_id}", response_model=APIResponse[OrganizationDetail])
async def get_organization(organization_id: str, current_user: CurrentUser, db: DBSession):
    """
    Get an organization with usage.

    - Platform owners: any organization
    - Everyone else: only their own
    """
    return ok(await organization_service.get_detail(db, current_user, organization_id))


@router.put("/{organization_id}", response_model=APIResponse[OrganizationRead])
async def update_organization(
    organization_id: str,
    data: OrganizationUpdate,
    current_user: PlatformOwner,
    db: DBSession,
):
    """Update name, description or quota (platform owner only)."""
    organization = await organization_service.update(db, current_user, organization_id, data)
    return ok(OrganizationRead.model_validate(organization), message="Organization updated successfully")


@router.delete("/{organization_id}", response_model=APIResponse[None])
async def delete_organization(organization_id: str, current_user: PlatformOwner, db: DBSession):
    """Soft-delete an organization without active users (platform owner only)."""
    await organization_service.delete(db, current_user, organization_id)
    return ok(message="Organization deleted successfully")


@router.get("/{organization_id}/users", response_model=APIResponse[Page[UserRead]])
async def list_organization_users(
    organization_id: str,
    current_user: AdminUser,
    db: DBSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Users of one organization (admins of that organization, platform owners)."""
    result = await organization_service.list_users(
        db, current_user, organization_id, page=page, limit=limit
    )
    return ok(Page[UserRead].from_result(result, UserRead))
