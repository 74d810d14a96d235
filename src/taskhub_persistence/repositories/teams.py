"""Team repository, including team membership."""

from __future__ import annotations

import re
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from taskhub_persistence.audit import AuditSink
from taskhub_persistence.columns import ColumnMap
from taskhub_persistence.database import Database
from taskhub_persistence.exceptions import validation_error
from taskhub_persistence.options import AuditConfig, CacheConfig, FilterOptions, PaginationOptions
from taskhub_persistence.pagination import PaginatedResult
from taskhub_persistence.repository import Row
from taskhub_persistence.schema import TEAM_ROLES, team_members, teams
from taskhub_persistence.soft_delete import SoftDeleteRepository

_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class TeamRepository(SoftDeleteRepository):
    """Teams are soft-deleted, cached and audited with change tracking."""

    def __init__(
        self,
        database: Database,
        *,
        audit_sink: AuditSink | None = None,
        audit_user_id: str | None = None,
    ) -> None:
        super().__init__(
            database,
            ColumnMap.for_table(teams, searchable=("name", "description")),
            entity_name="Team",
            cache_config=CacheConfig(enabled=True, ttl=300, key_prefix="team"),
            audit_config=AuditConfig(enabled=True, track_changes=True, user_id=audit_user_id),
            audit_sink=audit_sink,
        )

    async def find_by_creator(
        self, creator_id: str, options: PaginationOptions | FilterOptions | None = None, **kwargs: Any
    ) -> PaginatedResult[Row]:
        return await self._find_scoped(teams.c.created_by_id == creator_id, options, kwargs, "find_by_creator")

    async def update_color(self, team_id: str, color: str) -> Row | None:
        if not _HEX_COLOR_RE.match(color):
            raise validation_error(
                "Invalid color format. Must be a hex color (e.g., #FF0000)",
                entity_name=self.entity_name,
                operation="update_color",
            )
        return await self.update(team_id, {"color": color})

    # -- Membership -------------------------------------------------------------

    async def add_member(
        self,
        team_id: str,
        user_id: str,
        role: str = "member",
        invited_by_id: str | None = None,
    ) -> Row:
        if role not in TEAM_ROLES:
            raise validation_error(
                f"Invalid team role '{role}'. Expected one of: {', '.join(TEAM_ROLES)}",
                entity_name=self.entity_name,
                operation="add_member",
            )
        stmt = (
            sa.insert(team_members)
            .values(team_id=team_id, user_id=user_id, role=role, invited_by_id=invited_by_id)
            .returning(*team_members.c)
        )
        try:
            async with self.database.unit_of_work() as uow:
                return dict((await uow.connection.execute(stmt)).mappings().one())
        except SQLAlchemyError as exc:
            raise self._error(exc, "add_member") from exc

    async def remove_member(self, team_id: str, user_id: str) -> bool:
        stmt = sa.delete(team_members).where(
            team_members.c.team_id == team_id,
            team_members.c.user_id == user_id,
        )
        try:
            async with self.database.unit_of_work() as uow:
                result = await uow.connection.execute(stmt)
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            raise self._error(exc, "remove_member") from exc

    async def list_members(self, team_id: str) -> list[Row]:
        stmt = (
            sa.select(team_members)
            .where(team_members.c.team_id == team_id)
            .order_by(team_members.c.joined_at.asc())
        )
        try:
            async with self.database.connect() as conn:
                return [dict(row) for row in (await conn.execute(stmt)).mappings().all()]
        except SQLAlchemyError as exc:
            raise self._error(exc, "list_members") from exc
