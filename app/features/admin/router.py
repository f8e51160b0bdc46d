"""
Platform administration endpoints (platform owner only).
"""

from typing import Any

from fastapi import APIRouter, Query

from app.features.admin.service import admin_service
from app.features.auth.dependencies import DBSession, PlatformOwner
from app.schemas.admin import DashboardStats, PlatformSettings, PlatformSettingsUpdate, StorageAnalytics
from app.schemas.audit import AuditLogDetail
from app.schemas.common import APIResponse, Page, ok

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard/stats", response_model=APIResponse[DashboardStats])
async def dashboard_stats(current_user: PlatformOwner, db: DBSession):
    """Platform totals, top organizations by storage and recent activity."""
    return ok(await admin_service.dashboard(db, current_user))


@router.get("/activity/timeline", response_model=APIResponse[Page[AuditLogDetail]])
async def activity_timeline(
    current_user: PlatformOwner,
    db: DBSession,
    action: str | None = None,
    user_id: str | None = None,
    organization_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    result = await admin_service.activity_timeline(
        db, current_user, action=action, user_id=user_id,
        organization_id=organization_id, page=page, limit=limit,
    )
    return ok(Page[AuditLogDetail].from_result(result))


@router.get("/storage/analytics", response_model=APIResponse[StorageAnalytics])
async def storage_analytics(current_user: PlatformOwner, db: DBSession):
    """Usage per organization and per file type."""
    return ok(await admin_service.storage_analytics(db, current_user))


@router.get("/settings", response_model=APIResponse[PlatformSettings])
async def get_settings(current_user: PlatformOwner):
    return ok(admin_service.current_settings(current_user))


@router.put("/settings", response_model=APIResponse[dict[str, Any]])
async def update_settings(data: PlatformSettingsUpdate, current_user: PlatformOwner, db: DBSession):
    """Record a settings change; effective values stay environment-driven."""
    submitted = await admin_service.update_settings(db, current_user, data)
    return ok(submitted, message="System settings updated successfully")
