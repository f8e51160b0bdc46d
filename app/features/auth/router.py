"""
Authentication endpoints.
"""

from fastapi import APIRouter, Depends, status

from app.core.rate_limit import rate_limit
from app.features.auth.dependencies import CurrentUser, DBSession
from app.features.auth.schemas import (
    AccessTokenResponse,
    AuthResult,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    VerifyResult,
)
from app.features.auth.service import auth_service
from app.schemas.common import APIResponse, ok
from app.schemas.user import UserProfile, UserRead

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=APIResponse[AuthResult],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("auth", by="ip"))],
)
async def register(data: RegisterRequest, db: DBSession):
    """
    Register a new user.

    Supply either an ``organization_id`` to join as a member, or an
    ``invitation_code`` to join with the invitation's organization and role.
    """
    user = await auth_service.register(db, data)
    return ok(
        AuthResult(user=UserRead.model_validate(user), tokens=auth_service.generate_tokens(user)),
        message="User registered successfully",
    )


@router.post(
    "/login",
    response_model=APIResponse[AuthResult],
    dependencies=[Depends(rate_limit("auth", by="ip"))],
)
async def login(data: LoginRequest, db: DBSession):
    """
    Login with email and password.

    Set ``admin_login`` to refuse members (admin console sign-in).
    """
    user = await auth_service.login(db, data.email, data.password, data.admin_login)
    return ok(
        AuthResult(user=UserRead.model_validate(user), tokens=auth_service.generate_tokens(user)),
        message="Login successful",
    )


@router.post("/refresh", response_model=APIResponse[AccessTokenResponse])
async def refresh_token(data: RefreshTokenRequest, db: DBSession):
    """Exchange a refresh token for a new access token."""
    return ok(await auth_service.refresh_access_token(db, data.refresh_token))


@router.post("/logout", response_model=APIResponse[None])
async def logout(current_user: CurrentUser, db: DBSession):
    """
    Logout endpoint.

    Tokens are stateless; the client discards them. The logout is audited.
    """
    await auth_service.logout(db, current_user)
    return ok(message="Logged out successfully")


@router.get("/profile", response_model=APIResponse[UserProfile])
async def profile(current_user: CurrentUser):
    """Current user with organization summary."""
    return ok(UserProfile.model_validate(current_user))


@router.get("/verify", response_model=APIResponse[VerifyResult])
async def verify(current_user: CurrentUser):
    """Check that the presented token is valid and resolve the caller."""
    return ok(VerifyResult(user=UserProfile.model_validate(current_user)), message="Token is valid")
