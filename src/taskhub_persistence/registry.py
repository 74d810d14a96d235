"""Composition root holding one repository instance per entity."""

from __future__ import annotations

from typing import Any

from taskhub_persistence.audit import AuditSink
from taskhub_persistence.database import Database
from taskhub_persistence.repositories.tasks import TaskRepository
from taskhub_persistence.repositories.teams import TeamRepository
from taskhub_persistence.repositories.users import UserRepository
from taskhub_persistence.repository import Repository


class RepositoryRegistry:
    """Named repositories sharing one :class:`Database`.

    Owned by the application's startup code; replaces module-level
    repository singletons.
    """

    def __init__(self, database: Database) -> None:
        self._database = database
        self._repositories: dict[str, Repository] = {}

    @property
    def database(self) -> Database:
        return self._database

    def register(self, name: str, repository: Repository) -> None:
        """Register *repository* under *name*.

        Raises ``ValueError`` if the repository is bound to a different
        database than the registry.
        """
        if repository.database is not self._database:
            raise ValueError(f"Repository '{name}' is bound to a different database than the registry.")
        self._repositories[name] = repository

    def get(self, name: str) -> Repository:
        if name not in self._repositories:
            raise KeyError(f"Repository '{name}' not registered. Available: {sorted(self._repositories)}")
        return self._repositories[name]

    def names(self) -> list[str]:
        return sorted(self._repositories)

    def __getitem__(self, name: str) -> Repository:
        return self.get(name)

    def __contains__(self, name: Any) -> bool:
        return name in self._repositories


def build_default_registry(
    database: Database,
    *,
    audit_sink: AuditSink | None = None,
    audit_user_id: str | None = None,
) -> RepositoryRegistry:
    """Wire the bundled user, team and task repositories."""
    registry = RepositoryRegistry(database)
    registry.register("user", UserRepository(database, audit_sink=audit_sink))
    registry.register("team", TeamRepository(database, audit_sink=audit_sink, audit_user_id=audit_user_id))
    registry.register("task", TaskRepository(database, audit_sink=audit_sink, audit_user_id=audit_user_id))
    return registry
