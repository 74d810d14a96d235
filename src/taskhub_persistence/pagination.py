"""Page window arithmetic and result containers.

Everything here is a pure function of ``(page, limit, total)``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from taskhub_persistence.exceptions import RepositoryException

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_PAGE_LIMIT = 1000
MIN_PAGE_LIMIT = 1


def validate_limit(limit: int) -> int:
    """Validate and clamp a page *limit*.

    Raises ``ValueError`` for values below 1.  Values exceeding
    ``MAX_PAGE_LIMIT`` are silently capped.
    """
    if limit < MIN_PAGE_LIMIT:
        raise ValueError(f"limit must be >= {MIN_PAGE_LIMIT}, got {limit}")
    return min(limit, MAX_PAGE_LIMIT)


def validate_offset(offset: int) -> int:
    """Raise ``ValueError`` for a negative *offset*."""
    if offset < 0:
        raise ValueError(f"offset must be >= 0, got {offset}")
    return offset


def offset_for(page: int, limit: int) -> int:
    """Return the row offset of *page* (1-based) for pages of *limit* rows."""
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    return (page - 1) * limit


@dataclass(frozen=True)
class PageInfo:
    """Pagination metadata for one page of results."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def paginate(page: int, limit: int, total: int) -> PageInfo:
    """Compute the :class:`PageInfo` for *page* given *total* matching rows."""
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    total_pages = math.ceil(total / limit)
    return PageInfo(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


@dataclass(frozen=True)
class PaginatedResult(Generic[T]):
    """One page of rows plus its :class:`PageInfo`."""

    data: list[T]
    pagination: PageInfo

    def __len__(self) -> int:
        return len(self.data)

    def to_dict(self) -> dict[str, Any]:
        return {"data": list(self.data), "pagination": self.pagination.to_dict()}


@dataclass
class BulkOperationResult:
    """Aggregate outcome of a batched update or delete.

    ``count`` is the number of rows actually affected, which can be lower
    than the number of identifiers requested.
    """

    success: bool
    count: int = 0
    errors: list[RepositoryException] = field(default_factory=list)

    @classmethod
    def empty(cls) -> BulkOperationResult:
        return cls(success=True, count=0)

    @classmethod
    def failed(cls, error: RepositoryException) -> BulkOperationResult:
        return cls(success=False, count=0, errors=[error])
