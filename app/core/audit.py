"""
Audit recorder.

Writes one append-only ``AuditLog`` row per mutating action. Writes are
best effort: the entry is inserted inside a savepoint, so a failed
insert rolls back only itself, is logged and counted, and never fails
the request that triggered it.
"""

import enum
import json
import uuid
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import get_request_context
from app.core.logging_config import get_logger
from app.core.metrics import audit_entries_total, audit_write_failures_total
from app.models.audit_log import AuditLog
from app.models.user import User

logger = get_logger(__name__)

SERIALIZATION_ERROR_PAYLOAD = {"error": "Failed to serialize data"}


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    PERMANENT_DELETE = "PERMANENT_DELETE"
    RESTORE = "RESTORE"
    RENAME = "RENAME"
    MOVE = "MOVE"
    CANCEL = "CANCEL"
    COMPLETE = "COMPLETE"
    DISMISS = "DISMISS"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    DOWNLOAD = "DOWNLOAD"
    EXPORT = "EXPORT"
    CLEANUP = "CLEANUP"
    VERSION = "VERSION"
    SHARE = "SHARE"
    UNSHARE = "UNSHARE"


class ResourceType(str, enum.Enum):
    USER = "USER"
    ORGANIZATION = "ORGANIZATION"
    FILE = "FILE"
    FOLDER = "FOLDER"
    INVITATION = "INVITATION"
    REMINDER = "REMINDER"
    AUDIT_LOGS = "AUDIT_LOGS"
    SETTINGS = "SETTINGS"
    SYSTEM = "SYSTEM"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (uuid.UUID, Path, Decimal)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_details(details: Any) -> str | None:
    """
    JSON-encode an audit payload.

    Never raises: anything that cannot be encoded is replaced by
    ``SERIALIZATION_ERROR_PAYLOAD``.
    """
    if details is None:
        return None
    try:
        return json.dumps(details, default=_json_default, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning("audit_details_unserializable", error=str(e))
        return json.dumps(SERIALIZATION_ERROR_PAYLOAD)


def parse_details(raw: str | None) -> Any:
    """Decode a stored payload; unreadable text is returned as-is."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


class AuditRecorder:
    """Appends audit entries without affecting the caller's transaction."""

    async def record(
        self,
        db: AsyncSession,
        *,
        action: AuditAction | str,
        resource_type: ResourceType | str,
        resource_id: Any = None,
        details: Any = None,
        actor: User | None = None,
        organization_id: str | None = None,
    ) -> AuditLog | None:
        """
        Append an entry.

        Args:
            db: Session of the request that performed the action
            action: Verb (CREATE, DELETE, LOGIN, ...)
            resource_type: Target kind (FILE, USER, ...)
            resource_id: Target id
            details: JSON-serializable payload
            actor: User performing the action
            organization_id: Defaults to the actor's organization

        Returns:
            The entry, or None if it could not be written
        """
        action_value = action.value if isinstance(action, AuditAction) else str(action)
        resource_value = (
            resource_type.value if isinstance(resource_type, ResourceType) else str(resource_type)
        )
        if organization_id is None and actor is not None:
            organization_id = actor.organization_id

        try:
            async with db.begin_nested():
                entry = AuditLog(
                    user_id=actor.id if actor is not None else None,
                    organization_id=organization_id,
                    action=action_value,
                    resource_type=resource_value,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    details=serialize_details(details),
                    ip_address=get_request_context().get("client_ip"),
                )
                db.add(entry)
        except Exception as e:
            audit_write_failures_total.inc()
            logger.error(
                "audit_write_failed",
                action=action_value,
                resource_type=resource_value,
                resource_id=resource_id,
                error=str(e),
                exc_info=True,
            )
            return None

        audit_entries_total.labels(action=action_value).inc()
        return entry


# Global instance
audit_recorder = AuditRecorder()
