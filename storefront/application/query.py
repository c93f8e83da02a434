"""Paginated search/sort evaluator shared by every listing endpoint.

A ``QueryEngine`` is bound to one mapped model, the column searched by prefix
and either a sortable column or a fixed ordering. Each listing call supplies a
``PageRequest`` plus optional equality filters and gets back the requested
slice together with pagination metadata computed from the same conditions.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import ValidationError
from .schemas import Pagination

T = TypeVar("T")

ASCENDING = "asc"
DESCENDING = "desc"


def sort_direction(selector: Optional[str]) -> str:
    """Map the ``filter`` selector onto a direction: ``ztoa`` sorts descending."""
    if selector and selector.strip().lower() == "ztoa":
        return DESCENDING
    return ASCENDING


@dataclass
class PageRequest:
    page: int = 1
    limit: int = 10
    search: str = ""
    filter: str = ""

    def __post_init__(self):
        if self.page < 1:
            raise ValidationError("page must be at least 1")
        if self.limit < 1:
            raise ValidationError("limit must be at least 1")
        self.search = (self.search or "").strip()

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page(Generic[T]):
    items: Sequence[T]
    pagination: Pagination


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    total_pages = math.ceil(total / limit)
    return Pagination(
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


@dataclass
class QueryEngine(Generic[T]):
    db: Session
    model: Any
    search_field: str
    sort_field: Optional[str] = None
    # Fixed ordering; when set the direction selector is ignored
    order_by: Optional[Sequence[Any]] = None
    options: Iterable[Any] = field(default_factory=tuple)

    def _conditions(self, request: PageRequest, filters: Optional[dict]) -> list:
        conditions = []
        if request.search:
            column = getattr(self.model, self.search_field)
            conditions.append(column.istartswith(request.search, autoescape=True))
        for name, value in (filters or {}).items():
            column = getattr(self.model, name)
            conditions.append(column.is_(None) if value is None else column == value)
        return conditions

    def _ordering(self, request: PageRequest) -> list:
        if self.order_by is not None:
            return list(self.order_by)
        primary_key = self.model.id
        sort_column = getattr(self.model, self.sort_field or self.search_field)
        if sort_direction(request.filter) == DESCENDING:
            return [sort_column.desc(), primary_key.desc()]
        return [sort_column.asc(), primary_key.asc()]

    def count(self, request: PageRequest, filters: Optional[dict] = None) -> int:
        stmt = select(func.count()).select_from(self.model)
        conditions = self._conditions(request, filters)
        if conditions:
            stmt = stmt.where(*conditions)
        return self.db.scalar(stmt) or 0

    def paginate(self, request: PageRequest, filters: Optional[dict] = None) -> Page[T]:
        total = self.count(request, filters)

        stmt = select(self.model)
        conditions = self._conditions(request, filters)
        if conditions:
            stmt = stmt.where(*conditions)
        stmt = stmt.order_by(*self._ordering(request)).offset(request.skip).limit(request.limit)
        for option in self.options:
            stmt = stmt.options(option)

        items = self.db.scalars(stmt).all()
        return Page(items=items, pagination=build_pagination(total, request.page, request.limit))
