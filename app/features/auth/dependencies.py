"""
Authentication dependencies for dependency injection.
"""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import Action, enforce
from app.core.context import set_request_context
from app.core.database import get_db
from app.core.exceptions import unauthorized
from app.core.logging_config import get_logger
from app.core.security import INVALID_TOKEN_MESSAGE, verify_token
from app.models.user import User

logger = get_logger(__name__)

NO_TOKEN_MESSAGE = "Access denied. No token provided."

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Resolve the caller from the Bearer token.

    The token only proves identity; role, organization and status are
    re-read from the database on every request. A user that no longer
    exists or is not active gets the same answer as a forged token.

    Raises:
        AuthenticationError: Missing, invalid or expired token; unknown or inactive user
    """
    if not credentials:
        raise unauthorized(NO_TOKEN_MESSAGE)

    payload = verify_token(credentials.credentials)
    user_id = payload["sub"]

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        logger.warning("token_subject_rejected", user_id=user_id, found=user is not None)
        raise unauthorized(INVALID_TOKEN_MESSAGE)

    request.state.user_id = user.id
    request.state.organization_id = user.organization_id
    set_request_context(user_id=user.id, organization_id=user.organization_id)

    return user


def require_action(action: Action):
    """
    Dependency factory gating a route on a resource-less policy action.

    Usage:
        @router.get("/settings")
        async def read_settings(user: User = Depends(require_action(Action.PLATFORM))):
            ...
    """
    async def checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        enforce(current_user, action)
        return current_user

    return checker


# Type aliases for cleaner code
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_action(Action.ADMIN))]
PlatformOwner = Annotated[User, Depends(require_action(Action.PLATFORM))]
DBSession = Annotated[AsyncSession, Depends(get_db)]
