"""Generic async repository over one SQLAlchemy table.

Every entity repository derives from :class:`Repository` and only supplies a
table binding, its column descriptor and its cache/audit configuration.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, TypeVar

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from taskhub_persistence.audit import AuditAction, AuditEmitter, AuditSink, diff_changes
from taskhub_persistence.columns import ColumnMap
from taskhub_persistence.database import Database, UnitOfWork
from taskhub_persistence.errors import to_repository_exception
from taskhub_persistence.exceptions import RepositoryError, RepositoryException, validation_error
from taskhub_persistence.filters import ComplexFilter, FilterCondition, build_predicate, combine
from taskhub_persistence.options import (
    AuditConfig,
    CacheConfig,
    FilterOptions,
    PaginationOptions,
    QueryOptions,
    SearchOptions,
    build_options,
    build_query_options,
)
from taskhub_persistence.pagination import BulkOperationResult, PaginatedResult, offset_for, paginate

logger = logging.getLogger(__name__)

R = TypeVar("R")

Row = dict[str, Any]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Repository:
    """CRUD, pagination, bulk writes and optimistic locking for one table.

    Instances hold only their construction-time configuration; every call
    carries its own arguments, so one instance per entity can be shared for
    the lifetime of the process.

    Args:
        database: The shared storage handle.
        columns: The table's :class:`ColumnMap`, or a bare ``Table`` to build
            one with the default column names.
        entity_name: Name used in errors, logs and audit events.  Defaults to
            the table name.
        cache_config: Declarative cache settings for a decorating cache layer.
        audit_config: Whether and how mutations are audited.
        audit_sink: Where audit events go.  Defaults to a logging sink.
    """

    def __init__(
        self,
        database: Database,
        columns: ColumnMap | sa.Table,
        *,
        entity_name: str | None = None,
        cache_config: CacheConfig | None = None,
        audit_config: AuditConfig | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        if isinstance(columns, sa.Table):
            columns = ColumnMap.for_table(columns)
        self._db = database
        self._columns = columns
        self._table = columns.table
        self._entity_name = entity_name or columns.table.name

        cache = cache_config or CacheConfig()
        if not cache.key_prefix:
            cache = cache.model_copy(update={"key_prefix": type(self).__name__.lower()})
        self._cache_config = cache
        self._audit_config = audit_config or AuditConfig()
        self._audit = AuditEmitter(self._entity_name, self._audit_config, audit_sink)

    # -- Configuration ----------------------------------------------------------

    @property
    def database(self) -> Database:
        return self._db

    @property
    def table(self) -> sa.Table:
        return self._table

    @property
    def columns(self) -> ColumnMap:
        return self._columns

    @property
    def entity_name(self) -> str:
        return self._entity_name

    @property
    def cache_config(self) -> CacheConfig:
        return self._cache_config

    @property
    def audit_config(self) -> AuditConfig:
        return self._audit_config

    def cache_key(self, *parts: Any) -> str:
        """Build a cache key under this repository's ``key_prefix``."""
        return ":".join([self._cache_config.key_prefix, *(str(p) for p in parts)])

    # -- Internals --------------------------------------------------------------

    def _error(self, exc: BaseException, operation: str) -> RepositoryException:
        return to_repository_exception(exc, entity_name=self._entity_name, operation=operation)

    def _check_columns(self, data: Mapping[str, Any], operation: str) -> None:
        unknown = self._columns.unknown_keys(data)
        if unknown:
            raise validation_error(
                f"Unknown field(s) for {self._entity_name}: {', '.join(sorted(unknown))}",
                entity_name=self._entity_name,
                operation=operation,
            )

    def _id_of(self, row: Mapping[str, Any]) -> str | None:
        value = row.get(self._columns.primary_key_name)
        return None if value is None else str(value)

    def _stamped(self, data: Mapping[str, Any]) -> dict[str, Any]:
        payload = dict(data)
        if self._columns.updated_at is not None:
            payload[self._columns.updated_at.key] = utcnow()
        return payload

    async def _fetch_one(self, conn: AsyncConnection, id: str) -> Row | None:
        stmt = sa.select(self._table).where(self._columns.primary_key == id).limit(1)
        row = (await conn.execute(stmt)).mappings().first()
        return dict(row) if row is not None else None

    def _order(self, stmt: sa.Select, opts: QueryOptions) -> sa.Select:
        if opts.order_by:
            return stmt.order_by(*opts.order_by)
        if opts.sort_by:
            column = self._columns.resolve(opts.sort_by)
            if column is not None:
                return stmt.order_by(column.asc() if opts.sort_order == "asc" else column.desc())
        return stmt

    async def _paginate(self, opts: QueryOptions, operation: str) -> PaginatedResult[Row]:
        count_stmt = sa.select(sa.func.count()).select_from(self._table)
        data_stmt = sa.select(self._table)
        if opts.where is not None:
            count_stmt = count_stmt.where(opts.where)
            data_stmt = data_stmt.where(opts.where)
        data_stmt = self._order(data_stmt, opts).limit(opts.limit).offset(offset_for(opts.page, opts.limit))

        try:
            async with self._db.connect() as conn:
                total = (await conn.execute(count_stmt)).scalar_one()
                rows = (await conn.execute(data_stmt)).mappings().all()
        except SQLAlchemyError as exc:
            raise self._error(exc, operation) from exc

        return PaginatedResult(
            data=[dict(row) for row in rows],
            pagination=paginate(opts.page, opts.limit, int(total)),
        )

    async def _find_scoped(
        self,
        predicate: Any,
        options: PaginationOptions | FilterOptions | None,
        kwargs: dict[str, Any],
        operation: str,
    ) -> PaginatedResult[Row]:
        """Paginate with *predicate* AND-ed onto the caller's ``where``."""
        opts = build_query_options(QueryOptions, options, kwargs, entity_name=self._entity_name, operation=operation)
        opts = opts.model_copy(update={"where": combine(opts.where, predicate)})
        return await self._paginate(opts, operation)

    # -- Reads ------------------------------------------------------------------

    async def find_by_id(self, id: str) -> Row | None:
        """Return the row with primary key *id*, or ``None``."""
        try:
            async with self._db.connect() as conn:
                return await self._fetch_one(conn, id)
        except SQLAlchemyError as exc:
            raise self._error(exc, "find_by_id") from exc

    async def find_many(
        self, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        """Return one page of rows and the pagination metadata.

        Accepts a :class:`QueryOptions`, :class:`PaginationOptions` or
        :class:`FilterOptions` and/or the same fields as keyword arguments:
        ``page``, ``limit``, ``offset``, ``sort_by``, ``sort_order``, ``where``
        and ``order_by``.  An explicit ``order_by`` wins over ``sort_by``;
        with neither, row order is unspecified.
        """
        opts = build_query_options(QueryOptions, options, kwargs, entity_name=self._entity_name, operation="find_many")
        return await self._paginate(opts, "find_many")

    async def find_where(
        self,
        conditions: FilterCondition | ComplexFilter | list[FilterCondition | ComplexFilter],
        options: PaginationOptions | FilterOptions | None = None,
        **kwargs: Any,
    ) -> PaginatedResult[Row]:
        """Paginate rows matching structured *conditions* (AND-ed with any ``where``)."""
        predicate = build_predicate(self._columns, conditions)
        return await self._find_scoped(predicate, options, kwargs, "find_where")

    async def search(
        self, query: str, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        """Case-insensitive substring search over the searchable columns."""
        opts = build_query_options(
            SearchOptions,
            options,
            {**kwargs, "query": query},
            entity_name=self._entity_name,
            operation="search",
        )
        if opts.fields:
            columns = [self._columns.resolve(name) for name in opts.fields]
            missing = [name for name, col in zip(opts.fields, columns) if col is None]
            if missing:
                raise validation_error(
                    f"Unknown search field(s): {', '.join(missing)}",
                    entity_name=self._entity_name,
                    operation="search",
                )
        else:
            columns = list(self._columns.searchable)
        if not columns:
            raise validation_error(
                f"{self._entity_name} has no searchable fields",
                entity_name=self._entity_name,
                operation="search",
            )

        if opts.query:
            matches = sa.or_(*(col.icontains(opts.query, autoescape=True) for col in columns))
            opts = opts.model_copy(update={"where": combine(opts.where, matches)})
        return await self._paginate(opts, "search")

    async def exists(self, id: str) -> bool:
        """Return ``True`` if a row with primary key *id* exists."""
        pk = self._columns.primary_key
        stmt = sa.select(pk).where(pk == id).limit(1)
        try:
            async with self._db.connect() as conn:
                return (await conn.execute(stmt)).first() is not None
        except SQLAlchemyError as exc:
            raise self._error(exc, "exists") from exc

    async def count(self, options: FilterOptions | QueryOptions | None = None, **kwargs: Any) -> int:
        """Count rows matching ``where`` (the same predicate ``find_many`` uses)."""
        if options is not None and not isinstance(options, FilterOptions):
            options = FilterOptions(where=getattr(options, "where", None))
        opts = build_options(FilterOptions, options, kwargs, entity_name=self._entity_name, operation="count")
        stmt = sa.select(sa.func.count()).select_from(self._table)
        if opts.where is not None:
            stmt = stmt.where(opts.where)
        try:
            async with self._db.connect() as conn:
                return int((await conn.execute(stmt)).scalar_one())
        except SQLAlchemyError as exc:
            raise self._error(exc, "count") from exc

    # -- Single writes ----------------------------------------------------------

    async def create(self, data: Mapping[str, Any]) -> Row:
        """Insert *data* and return the stored row."""
        self._check_columns(data, "create")
        stmt = sa.insert(self._table).values(dict(data)).returning(*self._table.c)
        try:
            async with self._db.unit_of_work() as uow:
                created = dict((await uow.connection.execute(stmt)).mappings().one())
                self._audit.emit(uow, AuditAction.CREATE, created, entity_id=self._id_of(created))
        except SQLAlchemyError as exc:
            raise self._error(exc, "create") from exc
        logger.debug("Created %s (id=%s)", self._entity_name, self._id_of(created))
        return created

    async def update(self, id: str, data: Mapping[str, Any], expected_version: int | None = None) -> Row | None:
        """Apply a partial update and return the updated row.

        With *expected_version* the write only matches when the stored
        version equals it, and bumps the version by one.  Any zero-row result
        in that case is reported as an optimistic locking conflict
        (``VALIDATION_ERROR``), since a missing row and a stale version are
        indistinguishable at write time.  Without it, a missing row returns
        ``None``.
        """
        self._check_columns(data, "update")
        cols = self._columns
        payload = self._stamped(data)
        where = cols.primary_key == id
        if expected_version is not None and cols.version is not None:
            where = sa.and_(where, cols.version == expected_version)
            payload[cols.version.key] = expected_version + 1
        stmt = sa.update(self._table).where(where).values(payload).returning(*self._table.c)

        try:
            async with self._db.unit_of_work() as uow:
                before = await self._fetch_one(uow.connection, id) if self._audit.track_changes else None
                row = (await uow.connection.execute(stmt)).mappings().first()
                if row is None:
                    if expected_version is not None:
                        raise RepositoryException(
                            RepositoryError.VALIDATION_ERROR,
                            "Optimistic locking failed - record was modified by another user",
                            entity_name=self._entity_name,
                            operation="update",
                        )
                    return None
                updated = dict(row)
                changes = diff_changes(before, updated, list(data)) if self._audit.track_changes else dict(data)
                self._audit.emit(uow, AuditAction.UPDATE, updated, entity_id=id, changes=changes)
        except SQLAlchemyError as exc:
            raise self._error(exc, "update") from exc
        return updated

    async def delete(self, id: str) -> bool:
        """Delete the row with primary key *id*; ``True`` iff a row was removed."""
        stmt = sa.delete(self._table).where(self._columns.primary_key == id).returning(*self._table.c)
        try:
            async with self._db.unit_of_work() as uow:
                row = (await uow.connection.execute(stmt)).mappings().first()
                if row is None:
                    return False
                self._audit.emit(uow, AuditAction.DELETE, dict(row), entity_id=id)
        except SQLAlchemyError as exc:
            raise self._error(exc, "delete") from exc
        return True

    # -- Bulk writes ------------------------------------------------------------

    async def create_many(self, items: Iterable[Mapping[str, Any]]) -> list[Row]:
        """Insert every item and return the stored rows in input order.

        Items may supply different keys; omitted columns take their defaults.
        Items are inserted in one statement per distinct key set, all inside
        one unit of work, so a failure raises and creates nothing.
        """
        rows_in = [dict(item) for item in items]
        if not rows_in:
            return []
        groups: dict[frozenset[str], list[int]] = {}
        for index, item in enumerate(rows_in):
            self._check_columns(item, "create_many")
            groups.setdefault(frozenset(item), []).append(index)

        stmt = sa.insert(self._table).returning(*self._table.c, sort_by_parameter_order=True)
        stored: list[Row | None] = [None] * len(rows_in)
        try:
            async with self._db.unit_of_work() as uow:
                for indexes in groups.values():
                    result = await uow.connection.execute(stmt, [rows_in[i] for i in indexes])
                    for i, row in zip(indexes, result.mappings().all()):
                        stored[i] = dict(row)
                created = [row for row in stored if row is not None]
                for row in created:
                    self._audit.emit(uow, AuditAction.CREATE, row, entity_id=self._id_of(row))
        except SQLAlchemyError as exc:
            raise self._error(exc, "create_many") from exc
        logger.debug("Created %d %s rows", len(created), self._entity_name)
        return created

    async def update_many(self, ids: Iterable[str], data: Mapping[str, Any]) -> BulkOperationResult:
        """Apply *data* to every row in *ids*.

        Never raises for store failures: they come back as
        ``success=False`` with the classified error.  ``count`` is the number
        of rows actually updated.
        """
        id_list = list(ids)
        if not id_list:
            return BulkOperationResult.empty()
        try:
            self._check_columns(data, "update_many")
            stmt = (
                sa.update(self._table)
                .where(self._columns.primary_key.in_(id_list))
                .values(self._stamped(data))
                .returning(*self._table.c)
            )
            async with self._db.unit_of_work() as uow:
                updated = [dict(row) for row in (await uow.connection.execute(stmt)).mappings().all()]
                for row in updated:
                    self._audit.emit(uow, AuditAction.UPDATE, row, entity_id=self._id_of(row), changes=dict(data))
        except RepositoryException as exc:
            return BulkOperationResult.failed(exc)
        except SQLAlchemyError as exc:
            return BulkOperationResult.failed(self._error(exc, "update_many"))
        return BulkOperationResult(success=True, count=len(updated))

    async def delete_many(self, ids: Iterable[str]) -> BulkOperationResult:
        """Delete every row in *ids*; same reporting contract as :meth:`update_many`."""
        id_list = list(ids)
        if not id_list:
            return BulkOperationResult.empty()
        stmt = sa.delete(self._table).where(self._columns.primary_key.in_(id_list)).returning(*self._table.c)
        try:
            async with self._db.unit_of_work() as uow:
                removed = [dict(row) for row in (await uow.connection.execute(stmt)).mappings().all()]
                for row in removed:
                    self._audit.emit(uow, AuditAction.DELETE, row, entity_id=self._id_of(row))
        except SQLAlchemyError as exc:
            return BulkOperationResult.failed(self._error(exc, "delete_many"))
        return BulkOperationResult(success=True, count=len(removed))

    # -- Transactions -----------------------------------------------------------

    async def with_transaction(self, callback: Callable[[UnitOfWork], Awaitable[R]]) -> R:
        """Run *callback* inside one unit of work and return its result.

        Repository calls made by the callback against the same
        :class:`Database` join the transaction; a nested call uses a
        savepoint.  An exception raised by the callback rolls back and
        propagates unchanged.  A failure to begin or commit the transaction
        raises ``TRANSACTION_ERROR``.
        """
        callback_failed = False
        try:
            async with self._db.transaction() as uow:
                try:
                    return await callback(uow)
                except BaseException:
                    callback_failed = True
                    raise
        except SQLAlchemyError as exc:
            if callback_failed:
                raise
            logger.error("%s with_transaction failed: %s", self._entity_name, type(exc).__name__)
            raise RepositoryException(
                RepositoryError.TRANSACTION_ERROR,
                "Transaction failed to begin or commit",
                original_error=exc,
                entity_name=self._entity_name,
                operation="with_transaction",
            ) from exc
