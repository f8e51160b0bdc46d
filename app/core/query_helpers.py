"""
Query helpers for listing endpoints.

Every list endpoint is page-based (``page`` starting at 1, ``limit`` per
page) and returns the total row count alongside the items.
"""

import math
from dataclasses import dataclass
from typing import Any, Generic, Sequence, Type, TypeVar

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class PageResult(Generic[T]):
    """Items of one page plus the numbers needed to build page metadata."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class QueryBuilder:
    """
    Fluent query builder for paginated listings.

    Usage:
        result = await (
            QueryBuilder(db, File)
            .filter(File.organization_id == org_id)
            .search("report", File.name, File.description)
            .order_by(File.created_at, "desc")
            .paginate(page=1, limit=20)
            .execute()
        )
    """

    def __init__(self, db: AsyncSession, model: Type[Any], query: Select | None = None):
        self.db = db
        self.model = model
        self._query = query if query is not None else select(model)
        self._page = 1
        self._limit = DEFAULT_PAGE_SIZE

    def filter(self, *conditions):
        """Add WHERE conditions."""
        self._query = self._query.where(*conditions)
        return self

    def filter_if(self, value: Any, condition):
        """Add a WHERE condition only when ``value`` is not None."""
        if value is not None:
            self._query = self._query.where(condition)
        return self

    def search(self, term: str | None, *columns):
        """Case-insensitive substring match on any of ``columns``."""
        if term:
            pattern = f"%{escape_like(term.strip())}%"
            self._query = self._query.where(
                or_(*(column.ilike(pattern, escape="\\") for column in columns))
            )
        return self

    def eager_load(self, *relationships):
        """Add eager loading for relationships."""
        for rel in relationships:
            self._query = self._query.options(selectinload(rel))
        return self

    def order_by(self, column, direction: str = "desc"):
        """Add ORDER BY clause."""
        if direction == "desc":
            self._query = self._query.order_by(column.desc())
        else:
            self._query = self._query.order_by(column.asc())
        return self

    def paginate(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        """Select one page; out-of-range values are clamped."""
        self._page = max(1, page)
        self._limit = min(max(1, limit), MAX_PAGE_SIZE)
        return self

    async def execute(self, scalars: bool = True) -> PageResult:
        """
        Execute query and return one page with the total count.

        With ``scalars=False`` items are full rows, for queries that
        select aggregates next to the entity.

        Runs two queries:
        1. Count query (for pagination metadata)
        2. Data query (with pagination applied)
        """
        count_query = select(func.count()).select_from(
            self._query.order_by(None).subquery()
        )
        total = (await self.db.execute(count_query)).scalar() or 0

        data_query = self._query.offset((self._page - 1) * self._limit).limit(self._limit)
        result = await self.db.execute(data_query)
        items = list(result.scalars().all() if scalars else result.all())

        logger.debug(
            "query_executed",
            model=self.model.__name__,
            returned=len(items),
            total=total,
        )

        return PageResult(items=items, total=total, page=self._page, limit=self._limit)


def page_of(items: Sequence[T], total: int, page: int, limit: int) -> PageResult[T]:
    """Wrap an already-sliced list."""
    return PageResult(items=list(items), total=total, page=page, limit=limit)
