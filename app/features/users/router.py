"""
User management endpoints.
"""

from fastapi import APIRouter, Query, status

from app.features.auth.dependencies import AdminUser, CurrentUser, DBSession
from app.features.users.service import user_service
from app.models.user import Role, UserStatus
from app.schemas.common import APIResponse, Page, ok
from app.schemas.user import PasswordChange, UserCreate, UserRead, UserStats, UserUpdate

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/", response_model=APIResponse[UserRead], status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, current_user: AdminUser, db: DBSession):
    """
    Create a user.

    - Organization admins: users in their own organization
    - Platform owners: any organization, or other platform owners
    """
    user = await user_service.create(db, current_user, data)
    return ok(UserRead.model_validate(user), message="User created successfully")


@router.get("/", response_model=APIResponse[Page[UserRead]])
async def list_users(
    current_user: AdminUser,
    db: DBSession,
    q: str | None = Query(None, max_length=100, description="Search first name, last name, email"),
    role: Role | None = None,
    status: UserStatus | None = None,
    organization_id: str | None = Query(None, description="Platform owners only"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """List users (admins only, scoped to the caller's organization)."""
    result = await user_service.list_users(
        db, current_user, q=q, role=role, status=status,
        organization_id=organization_id, page=page, limit=limit,
    )
    return ok(Page[UserRead].from_result(result, UserRead))


@router.get("/stats/overview", response_model=APIResponse[UserStats])
async def user_stats(current_user: AdminUser, db: DBSession):
    """User counts by role and status."""
    return ok(await user_service.stats(db, current_user))


@router.get("/{user_id}", response_model=APIResponse[UserRead])
async def get_user(user_id: str, current_user: CurrentUser, db: DBSession):
    """Get a user (self, or an admin of the same organization)."""
    user = await user_service.get_for(db, current_user, user_id)
    return ok(UserRead.model_validate(user))


@router.put("/{user_id}", response_model=APIResponse[UserRead])
async def update_user(user_id: str, data: UserUpdate, current_user: AdminUser, db: DBSession):
    """Update a user's profile, role or status."""
    user = await user_service.update(db, current_user, user_id, data)
    return ok(UserRead.model_validate(user), message="User updated successfully")


@router.put("/{user_id}/password", response_model=APIResponse[None])
async def change_password(user_id: str, data: PasswordChange, current_user: CurrentUser, db: DBSession):
    """Change a password (your own with the current password, or as an admin)."""
    await user_service.change_password(db, current_user, user_id, data)
    return ok(message="Password updated successfully")


@router.delete("/{user_id}", response_model=APIResponse[None])
async def delete_user(user_id: str, current_user: AdminUser, db: DBSession):
    """Soft-delete a user."""
    await user_service.delete(db, current_user, user_id)
    return ok(message="User deleted successfully")
