"""
API v1 router aggregator.

All v1 routes are registered here.
"""

from fastapi import APIRouter

from app.features.admin.router import router as admin_router
from app.features.audit.router import router as audit_router
from app.features.auth.router import router as auth_router
from app.features.files.router import router as files_router
from app.features.folders.router import router as folders_router
from app.features.invitations.router import router as invitations_router
from app.features.organizations.router import router as organizations_router
from app.features.reminders.router import router as reminders_router
from app.features.users.router import router as users_router

# V1 API router
v1_router = APIRouter(prefix="/v1")

# Register all feature routers
v1_router.include_router(auth_router)
v1_router.include_router(users_router)
v1_router.include_router(organizations_router)
v1_router.include_router(files_router)
v1_router.include_router(folders_router)
v1_router.include_router(invitations_router)
v1_router.include_router(reminders_router)
v1_router.include_router(audit_router)
v1_router.include_router(admin_router)
