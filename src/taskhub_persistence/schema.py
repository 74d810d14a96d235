"""Table definitions for the entities served by the bundled repositories."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa

metadata = sa.MetaData()

TEAM_ROLES = ("owner", "admin", "member")
TASK_STATUSES = ("todo", "in-progress", "review", "completed", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _in(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True, default=_uuid),
    sa.Column("email", sa.String(255), nullable=False, unique=True),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, default=_now),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, default=_now),
)

teams = sa.Table(
    "teams",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True, default=_uuid),
    sa.Column("name", sa.String(100), nullable=False, index=True),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("color", sa.String(7), nullable=False, default="#4f46e5"),
    sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, default=_now),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, default=_now),
    sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
)

team_members = sa.Table(
    "team_members",
    metadata,
    sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("role", sa.String(20), nullable=False, default="member"),
    sa.Column("invited_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, default=_now),
    sa.CheckConstraint(_in("role", TEAM_ROLES), name="ck_team_members_role"),
)

tasks = sa.Table(
    "tasks",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True, default=_uuid),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("description", sa.Text, nullable=True),
    sa.Column("status", sa.String(20), nullable=False, default="todo"),
    sa.Column("priority", sa.String(20), nullable=False, default="medium"),
    sa.Column("project_id", sa.String(36), nullable=True, index=True),
    sa.Column("assignee_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    sa.Column("created_by_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("version", sa.Integer, nullable=False, default=1),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, default=_now),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, default=_now),
    sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint(_in("status", TASK_STATUSES), name="ck_tasks_status"),
    sa.CheckConstraint(_in("priority", TASK_PRIORITIES), name="ck_tasks_priority"),
)
