"""Task repository."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from taskhub_persistence.audit import AuditSink
from taskhub_persistence.columns import ColumnMap
from taskhub_persistence.database import Database
from taskhub_persistence.exceptions import validation_error
from taskhub_persistence.filters import DateRange, date_range_predicate
from taskhub_persistence.options import AuditConfig, CacheConfig, FilterOptions, PaginationOptions
from taskhub_persistence.pagination import BulkOperationResult, PaginatedResult
from taskhub_persistence.repository import Row
from taskhub_persistence.schema import TASK_PRIORITIES, TASK_STATUSES, tasks
from taskhub_persistence.soft_delete import SoftDeleteRepository


class TaskRepository(SoftDeleteRepository):
    """Tasks are versioned for optimistic locking and soft-deleted."""

    def __init__(
        self,
        database: Database,
        *,
        audit_sink: AuditSink | None = None,
        audit_user_id: str | None = None,
    ) -> None:
        super().__init__(
            database,
            ColumnMap.for_table(tasks, searchable=("title", "description")),
            entity_name="Task",
            cache_config=CacheConfig(enabled=True, ttl=120, key_prefix="task"),
            audit_config=AuditConfig(enabled=True, user_id=audit_user_id),
            audit_sink=audit_sink,
        )

    def _check_status(self, status: str, operation: str) -> None:
        if status not in TASK_STATUSES:
            raise validation_error(
                f"Invalid task status '{status}'. Expected one of: {', '.join(TASK_STATUSES)}",
                entity_name=self.entity_name,
                operation=operation,
            )

    async def find_by_project(
        self, project_id: str, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        return await self._find_scoped(tasks.c.project_id == project_id, options, kwargs, "find_by_project")

    async def find_by_assignee(
        self, assignee_id: str, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        return await self._find_scoped(tasks.c.assignee_id == assignee_id, options, kwargs, "find_by_assignee")

    async def find_due_between(
        self, window: DateRange, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        """Tasks whose due date falls inside *window*, soonest first by default."""
        if options is None:
            kwargs.setdefault("sort_by", "due_date")
            kwargs.setdefault("sort_order", "asc")
        predicate = date_range_predicate(tasks.c.due_date, window)
        due_set = tasks.c.due_date.is_not(None)
        where = due_set if predicate is None else predicate & due_set
        return await self._find_scoped(where, options, kwargs, "find_due_between")

    async def update_status(self, task_id: str, status: str, expected_version: int | None = None) -> Row | None:
        self._check_status(status, "update_status")
        return await self.update(task_id, {"status": status}, expected_version=expected_version)

    async def update_priority(self, task_id: str, priority: str, expected_version: int | None = None) -> Row | None:
        if priority not in TASK_PRIORITIES:
            raise validation_error(
                f"Invalid task priority '{priority}'. Expected one of: {', '.join(TASK_PRIORITIES)}",
                entity_name=self.entity_name,
                operation="update_priority",
            )
        return await self.update(task_id, {"priority": priority}, expected_version=expected_version)

    async def assign(self, task_id: str, assignee_id: str | None) -> Row | None:
        return await self.update(task_id, {"assignee_id": assignee_id})

    async def bulk_update_status(self, task_ids: Iterable[str], status: str) -> BulkOperationResult:
        self._check_status(status, "bulk_update_status")
        return await self.update_many(task_ids, {"status": status})
