"""Tombstone support layered on :class:`Repository`."""

from __future__ import annotations

from typing import Any

import sqlalchemy as sa

from taskhub_persistence.exceptions import validation_error
from taskhub_persistence.options import FilterOptions, PaginationOptions
from taskhub_persistence.pagination import PaginatedResult
from taskhub_persistence.repository import Repository, Row, utcnow


class SoftDeleteRepository(Repository):
    """Repository whose rows are tombstoned through a ``deleted_at`` column."""

    def _deleted_at(self, operation: str) -> sa.Column:
        column = self._columns.deleted_at
        if column is None:
            raise validation_error(
                "Table does not support soft delete",
                entity_name=self._entity_name,
                operation=operation,
            )
        return column

    async def soft_delete(self, id: str) -> Row | None:
        """Stamp ``deleted_at``; returns the row, or ``None`` if it does not exist."""
        column = self._deleted_at("soft_delete")
        return await self.update(id, {column.key: utcnow()})

    async def restore(self, id: str) -> Row | None:
        """Clear ``deleted_at``."""
        column = self._deleted_at("restore")
        return await self.update(id, {column.key: None})

    async def find_deleted(
        self, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        """Paginate tombstoned rows, AND-ed with any caller ``where``."""
        column = self._deleted_at("find_deleted")
        return await self._find_scoped(column.is_not(None), options, kwargs, "find_deleted")

    async def find_active(
        self, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        """Paginate rows that are not tombstoned."""
        column = self._deleted_at("find_active")
        return await self._find_scoped(column.is_(None), options, kwargs, "find_active")

    async def find_with_deleted(
        self, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        """Paginate rows regardless of tombstone state."""
        return await self.find_many(options, **kwargs)
