"""
Common/shared Pydantic schemas.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from app.core.query_helpers import PageResult

T = TypeVar("T")


# Base configuration for all schemas
class BaseSchema(BaseModel):
    """
    Base schema with common configuration.

    All schemas should inherit from this.
    """

    model_config = ConfigDict(
        from_attributes=True,  # Allow ORM mode (SQLAlchemy objects)
        populate_by_name=True,  # Allow population by field name or alias
        str_strip_whitespace=True,  # Strip whitespace from strings
        validate_assignment=True,  # Validate on assignment, not just creation
    )


class APIResponse(BaseModel, Generic[T]):
    """
    Standard response envelope.

    Every endpoint, successful or not, answers with this shape.
    """

    success: bool = True
    message: str | None = None
    data: T | None = None
    errors: list[Any] | None = None


def ok(data: Any = None, message: str | None = None) -> APIResponse:
    """Successful envelope."""
    return APIResponse(success=True, message=message, data=data)


def failure(message: str, errors: list[Any] | None = None) -> dict[str, Any]:
    """Error envelope as a plain dict (rendered by exception handlers)."""
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


class PageMeta(BaseModel):
    """Pagination metadata."""

    page: int
    limit: int
    total: int
    pages: int


class Page(BaseModel, Generic[T]):
    """
    One page of a listing.

    Usage:
        Page[UserRead].from_result(result, UserRead)
    """

    items: list[T]
    pagination: PageMeta

    @classmethod
    def from_result(cls, result: PageResult, schema: type[BaseModel] | None = None) -> "Page":
        items = result.items
        if schema is not None:
            items = [schema.model_validate(item) for item in items]
        return cls(
            items=items,
            pagination=PageMeta(
                page=result.page,
                limit=result.limit,
                total=result.total,
                pages=result.pages,
            ),
        )


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str
