"""User repository."""

from __future__ import annotations

import sqlalchemy as sa

from taskhub_persistence.audit import AuditSink
from taskhub_persistence.columns import ColumnMap
from taskhub_persistence.database import Database
from taskhub_persistence.options import AuditConfig, CacheConfig
from taskhub_persistence.repository import Repository, Row
from taskhub_persistence.schema import users


class UserRepository(Repository):
    def __init__(self, database: Database, *, audit_sink: AuditSink | None = None) -> None:
        super().__init__(
            database,
            ColumnMap.for_table(users, searchable=("name", "email")),
            entity_name="User",
            cache_config=CacheConfig(enabled=True, ttl=600, key_prefix="user"),
            audit_config=AuditConfig(enabled=False),
            audit_sink=audit_sink,
        )

    async def find_by_email(self, email: str) -> Row | None:
        page = await self.find_many(where=sa.func.lower(users.c.email) == email.strip().lower(), limit=1)
        return page.data[0] if page.data else None
