"""
Access control policy.

Every authorization decision in the API goes through ``authorize`` /
``enforce``. The rule table below is the only place role and
organization checks are written down; routers and services name the
action they need instead of comparing roles inline.

Role hierarchy: platform_owner > organization_admin > member.

Authentication happens before any of this runs (see
``app.features.auth.dependencies``); a failure here is always an
authorization failure, never an authentication one.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from app.config import settings
from app.core.exceptions import AuthorizationError
from app.core.logging_config import get_logger
from app.core.metrics import access_denied_total
from app.models.file_share import SharePermission
from app.models.organization import Organization
from app.models.user import Role, User

logger = get_logger(__name__)

ROLE_RANK: dict[str, int] = {
    Role.MEMBER.value: 1,
    Role.ORGANIZATION_ADMIN.value: 2,
    Role.PLATFORM_OWNER.value: 3,
}


class Action(str, Enum):
    """Operations the policy knows how to evaluate."""

    ACCESS_ORGANIZATION = "organization:access"
    ACCESS_FILE = "file:access"
    MODIFY_FILE = "file:modify"
    MODIFY_FOLDER = "folder:modify"
    ADMIN = "admin"
    PLATFORM = "platform"
    SELF_OR_ADMIN = "user:self_or_admin"
    MANAGE_USER = "user:manage"
    OWN_REMINDER = "reminder:own"
    SHARE_FILE = "file:share"
    EDIT_SHARED_FILE = "file:edit_shared"


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy evaluation."""

    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


def role_at_least(caller: User, role: Role | str) -> bool:
    """True when the caller's role ranks at or above ``role``."""
    required = role.value if isinstance(role, Role) else role
    return ROLE_RANK.get(caller.role, 0) >= ROLE_RANK[required]


def organization_of(resource: Any) -> str | None:
    """
    Organization id a resource belongs to.

    Accepts an organization id, an Organization, or any object with an
    ``organization_id`` attribute (users, files, folders, audit entries).
    """
    if resource is None:
        return None
    if isinstance(resource, str):
        return resource
    if isinstance(resource, Organization):
        return resource.id
    return getattr(resource, "organization_id", None)


def _in_caller_org(caller: User, resource: Any) -> bool:
    target = organization_of(resource)
    return caller.organization_id is not None and target == caller.organization_id


# Rules --------------------------------------------------------------------

def _organization_access(caller: User, resource: Any) -> Decision:
    if caller.is_platform_owner or _in_caller_org(caller, resource):
        return ALLOW
    return deny("Access denied. Organization access required.")


def _file_access(caller: User, resource: Any) -> Decision:
    if caller.is_platform_owner or _in_caller_org(caller, resource):
        return ALLOW
    return deny("Access denied. File belongs to different organization.")


def _modify_file(caller: User, resource: Any) -> Decision:
    decision = _file_access(caller, resource)
    if not decision or caller.is_platform_owner:
        return decision
    if caller.is_admin or getattr(resource, "uploaded_by", None) == caller.id:
        return ALLOW
    return deny("You can only modify files you uploaded")


def _modify_folder(caller: User, resource: Any) -> Decision:
    decision = _organization_access(caller, resource)
    if not decision or caller.is_platform_owner:
        return decision
    if caller.is_admin or getattr(resource, "created_by", None) == caller.id:
        return ALLOW
    return deny("You can only modify folders you created")


def _share_file(caller: User, resource: Any) -> Decision:
    decision = _file_access(caller, resource)
    if not decision or _modify_file(caller, resource):
        return decision
    return deny("Only the uploader or an admin can share this file")


def _edit_shared_file(caller: User, resource: Any) -> Decision:
    """``resource`` is the caller's share of the file, or None."""
    if (
        resource is not None
        and resource.shared_with == caller.id
        and resource.permission == SharePermission.EDIT.value
        and resource.is_usable
    ):
        return ALLOW
    return deny("You can only modify files you uploaded")


def _admin(caller: User, resource: Any) -> Decision:
    if role_at_least(caller, Role.ORGANIZATION_ADMIN):
        return ALLOW
    return deny("Access denied. Admin privileges required.")


def _platform(caller: User, resource: Any) -> Decision:
    if caller.role == Role.PLATFORM_OWNER.value:
        return ALLOW
    return deny("Access denied. Platform owner privileges required.")


def _manage_user(caller: User, resource: Any) -> Decision:
    decision = _admin(caller, resource)
    if not decision:
        return decision
    return _organization_access(caller, resource)


def _self_or_admin(caller: User, resource: Any) -> Decision:
    if resource is not None and getattr(resource, "id", None) == caller.id:
        return ALLOW
    return _manage_user(caller, resource)


def _own_reminder(caller: User, resource: Any) -> Decision:
    if caller.is_platform_owner or getattr(resource, "user_id", None) == caller.id:
        return ALLOW
    return deny("You can only manage your own reminders")


POLICIES: dict[Action, Callable[[User, Any], Decision]] = {
    Action.ACCESS_ORGANIZATION: _organization_access,
    Action.ACCESS_FILE: _file_access,
    Action.MODIFY_FILE: _modify_file,
    Action.MODIFY_FOLDER: _modify_folder,
    Action.ADMIN: _admin,
    Action.PLATFORM: _platform,
    Action.SELF_OR_ADMIN: _self_or_admin,
    Action.MANAGE_USER: _manage_user,
    Action.OWN_REMINDER: _own_reminder,
    Action.SHARE_FILE: _share_file,
    Action.EDIT_SHARED_FILE: _edit_shared_file,
}


def authorize(caller: User, action: Action, resource: Any = None) -> Decision:
    """
    Evaluate ``action`` on ``resource`` for ``caller``.

    Args:
        caller: Authenticated, active user
        action: Policy to evaluate
        resource: Target (organization id, model instance, or None)

    Returns:
        Decision, truthy when allowed
    """
    return POLICIES[action](caller, resource)


def enforce(
    caller: User,
    action: Action,
    resource: Any = None,
    message: str | None = None,
) -> None:
    """
    Like ``authorize`` but raises on denial.

    Raises:
        AuthorizationError: With ``message`` or the rule's reason
    """
    decision = authorize(caller, action, resource)
    if decision:
        return

    access_denied_total.labels(action=action.value).inc()
    logger.warning(
        "access_denied",
        action=action.value,
        caller_id=caller.id,
        caller_role=caller.role,
        caller_organization_id=caller.organization_id,
        target_organization_id=organization_of(resource),
    )
    raise AuthorizationError(message or decision.reason)


# File paths ---------------------------------------------------------------

def resolve_storage_path(storage_path: str, upload_root: str | Path | None = None) -> Path:
    """
    Physical location of a stored blob.

    Absolute paths pass through unchanged; relative paths are resolved
    against the upload root.
    """
    path = Path(storage_path)
    if path.is_absolute():
        return path
    root = Path(upload_root if upload_root is not None else settings.upload_dir)
    return root.resolve() / path


@dataclass(frozen=True)
class FileGrant:
    """A file the caller may access together with its physical path."""

    file: Any
    path: Path


def grant_file_access(caller: User, file: Any, action: Action = Action.ACCESS_FILE) -> FileGrant:
    """
    Enforce file access and resolve the blob path.

    Raises:
        AuthorizationError: Caller is outside the file's organization,
            or lacks modify rights when ``action`` is MODIFY_FILE
    """
    enforce(caller, action, file)
    return FileGrant(file=file, path=resolve_storage_path(file.storage_path))
