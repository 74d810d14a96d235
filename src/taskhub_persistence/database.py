"""Shared storage handle and unit-of-work scoping.

A :class:`Database` wraps one ``AsyncEngine`` and is injected into every
repository that talks to that store.  The active :class:`UnitOfWork` lives in
a ``ContextVar`` so that repository calls made inside
``Repository.with_transaction`` join the same transaction without any state
being kept on the repositories themselves.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from contextvars import ContextVar

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

logger = logging.getLogger(__name__)

AfterCommitHook = Callable[[], Awaitable[None]]

_current_unit_of_work: ContextVar[UnitOfWork | None] = ContextVar("taskhub_unit_of_work", default=None)


class UnitOfWork:
    """A transactional connection plus the hooks to run once it commits.

    Nested units of work share the parent's connection and run inside a
    savepoint; their hooks are handed to the parent on success and dropped
    on rollback.
    """

    def __init__(self, database: Database, connection: AsyncConnection, parent: UnitOfWork | None = None) -> None:
        self.database = database
        self.connection = connection
        self.parent = parent
        self._after_commit: list[AfterCommitHook] = []

    @property
    def is_nested(self) -> bool:
        return self.parent is not None

    def after_commit(self, hook: AfterCommitHook) -> None:
        """Schedule *hook* to run after the outermost transaction commits."""
        self._after_commit.append(hook)

    def _hand_over(self) -> None:
        assert self.parent is not None  # noqa: S101
        self.parent._after_commit.extend(self._after_commit)
        self._after_commit.clear()

    async def _run_after_commit(self) -> None:
        hooks, self._after_commit = self._after_commit, []
        for hook in hooks:
            try:
                await hook()
            except Exception:
                logger.warning("After-commit hook failed; committed work unaffected.", exc_info=True)


class Database:
    """Constructor-injected storage handle shared by repositories."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def current(self) -> UnitOfWork | None:
        """Return the unit of work active for this database in the current task."""
        uow = _current_unit_of_work.get()
        if uow is not None and uow.database is self:
            return uow
        return None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[UnitOfWork]:
        """Open a unit of work, or a savepoint if one is already active.

        Commits when the block exits normally and rolls back when it raises;
        the exception propagates unchanged.
        """
        parent = self.current()
        if parent is not None:
            async with parent.connection.begin_nested():
                uow = UnitOfWork(self, parent.connection, parent)
                token = _current_unit_of_work.set(uow)
                try:
                    yield uow
                finally:
                    _current_unit_of_work.reset(token)
            uow._hand_over()
            return

        async with self._engine.begin() as conn:
            uow = UnitOfWork(self, conn)
            token = _current_unit_of_work.set(uow)
            try:
                yield uow
            finally:
                _current_unit_of_work.reset(token)
        logger.debug("Unit of work committed")
        await uow._run_after_commit()

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[UnitOfWork]:
        """Join the active unit of work, or open a new one for a single write."""
        current = self.current()
        if current is not None:
            yield current
            return
        async with self.transaction() as uow:
            yield uow

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection for reads, reusing the active transaction if any."""
        current = self.current()
        if current is not None:
            yield current.connection
            return
        async with self._engine.connect() as conn:
            yield conn

    async def dispose(self) -> None:
        await self._engine.dispose()
