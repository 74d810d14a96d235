"""Tests for the bundled user, team and task repositories."""

from datetime import datetime, timedelta, timezone

import pytest
from taskhub_persistence.exceptions import RepositoryError, RepositoryException
from taskhub_persistence.filters import DateRange
from taskhub_persistence.options import PaginationOptions
from taskhub_persistence.repositories import TaskRepository, TeamRepository, UserRepository

BASE = datetime(2026, 3, 1, tzinfo=timezone.utc)


# -- users ------------------------------------------------------------------------


async def test_find_by_email_is_case_insensitive(users: UserRepository, alice: dict):
    found = await users.find_by_email("  Alice@Example.com ")
    assert found["id"] == alice["id"]
    assert await users.find_by_email("nobody@example.com") is None


# -- teams ------------------------------------------------------------------------


async def test_team_defaults(teams: TeamRepository, alice: dict):
    team = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    assert team["color"] == "#4f46e5"
    assert team["deleted_at"] is None


async def test_find_by_creator(teams: TeamRepository, alice: dict, bob: dict):
    await teams.create({"name": "Core", "created_by_id": alice["id"]})
    await teams.create({"name": "Web", "created_by_id": bob["id"]})
    page = await teams.find_by_creator(bob["id"])
    assert [row["name"] for row in page.data] == ["Web"]


async def test_update_color(teams: TeamRepository, alice: dict):
    team = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    updated = await teams.update_color(team["id"], "#FF0000")
    assert updated["color"] == "#FF0000"


@pytest.mark.parametrize("color", ["red", "#FFF", "#GG0000", "FF0000"])
async def test_update_color_rejects_invalid(teams: TeamRepository, alice: dict, color: str):
    team = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    with pytest.raises(RepositoryException) as exc_info:
        await teams.update_color(team["id"], color)
    exc = exc_info.value
    assert exc.error_type is RepositoryError.VALIDATION_ERROR
    assert exc.message == "Invalid color format. Must be a hex color (e.g., #FF0000)"


async def test_team_requires_existing_creator(teams: TeamRepository):
    with pytest.raises(RepositoryException) as exc_info:
        await teams.create({"name": "Orphan", "created_by_id": "ghost"})
    assert exc_info.value.error_type is RepositoryError.FOREIGN_KEY_VIOLATION


async def test_membership(teams: TeamRepository, alice: dict, bob: dict):
    team = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    member = await teams.add_member(team["id"], bob["id"], role="admin", invited_by_id=alice["id"])
    assert member["role"] == "admin"
    assert member["joined_at"] is not None

    assert [m["user_id"] for m in await teams.list_members(team["id"])] == [bob["id"]]
    assert await teams.remove_member(team["id"], bob["id"]) is True
    assert await teams.remove_member(team["id"], bob["id"]) is False
    assert await teams.list_members(team["id"]) == []


async def test_add_member_twice_is_duplicate(teams: TeamRepository, alice: dict):
    team = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    await teams.add_member(team["id"], alice["id"], role="owner")
    with pytest.raises(RepositoryException) as exc_info:
        await teams.add_member(team["id"], alice["id"])
    assert exc_info.value.error_type is RepositoryError.DUPLICATE_KEY
    assert exc_info.value.operation == "add_member"


async def test_add_member_rejects_unknown_role(teams: TeamRepository, alice: dict):
    team = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    with pytest.raises(RepositoryException) as exc_info:
        await teams.add_member(team["id"], alice["id"], role="guest")
    assert exc_info.value.error_type is RepositoryError.VALIDATION_ERROR


async def test_team_search(teams: TeamRepository, alice: dict):
    await teams.create({"name": "Platform", "description": "Infra and tooling", "created_by_id": alice["id"]})
    await teams.create({"name": "Web", "description": "Frontend", "created_by_id": alice["id"]})
    page = await teams.search("tool")
    assert [row["name"] for row in page.data] == ["Platform"]


# -- tasks ------------------------------------------------------------------------


async def test_task_defaults(tasks: TaskRepository):
    task = await tasks.create({"title": "Plan sprint"})
    assert task["status"] == "todo"
    assert task["priority"] == "medium"
    assert task["version"] == 1


async def test_find_by_project_and_assignee(tasks: TaskRepository, alice: dict):
    await tasks.create({"title": "a", "project_id": "p-1", "assignee_id": alice["id"]})
    await tasks.create({"title": "b", "project_id": "p-1"})
    await tasks.create({"title": "c", "project_id": "p-2", "assignee_id": alice["id"]})

    assert (await tasks.find_by_project("p-1")).pagination.total == 2
    mine = await tasks.find_by_assignee(alice["id"], sort_by="title", sort_order="asc")
    assert [row["title"] for row in mine.data] == ["a", "c"]


async def test_find_due_between_orders_soonest_first(tasks: TaskRepository):
    await tasks.create_many(
        [
            {"title": "later", "due_date": BASE + timedelta(days=5)},
            {"title": "sooner", "due_date": BASE + timedelta(days=1)},
            {"title": "outside", "due_date": BASE + timedelta(days=30)},
            {"title": "undated", "due_date": None},
        ]
    )
    page = await tasks.find_due_between(DateRange(start=BASE, end=BASE + timedelta(days=7)))
    assert [row["title"] for row in page.data] == ["sooner", "later"]


async def test_find_due_between_open_window_skips_undated(tasks: TaskRepository):
    await tasks.create_many([{"title": "dated", "due_date": BASE}, {"title": "undated", "due_date": None}])
    page = await tasks.find_due_between(DateRange())
    assert [row["title"] for row in page.data] == ["dated"]


async def test_find_due_between_keeps_explicit_sort(tasks: TaskRepository):
    await tasks.create_many(
        [
            {"title": "a", "due_date": BASE + timedelta(days=1)},
            {"title": "b", "due_date": BASE + timedelta(days=2)},
        ]
    )
    opts = PaginationOptions(sort_by="due_date", sort_order="desc")
    page = await tasks.find_due_between(DateRange(start=BASE), opts)
    assert [row["title"] for row in page.data] == ["b", "a"]


async def test_update_status_validates(tasks: TaskRepository):
    task = await tasks.create({"title": "Ship"})
    with pytest.raises(RepositoryException) as exc_info:
        await tasks.update_status(task["id"], "blocked")
    assert exc_info.value.error_type is RepositoryError.VALIDATION_ERROR
    assert (await tasks.find_by_id(task["id"]))["status"] == "todo"


async def test_update_priority(tasks: TaskRepository):
    task = await tasks.create({"title": "Ship"})
    assert (await tasks.update_priority(task["id"], "urgent"))["priority"] == "urgent"
    with pytest.raises(RepositoryException):
        await tasks.update_priority(task["id"], "whenever")


async def test_assign_and_unassign(tasks: TaskRepository, alice: dict):
    task = await tasks.create({"title": "Review"})
    assert (await tasks.assign(task["id"], alice["id"]))["assignee_id"] == alice["id"]
    assert (await tasks.assign(task["id"], None))["assignee_id"] is None


async def test_assign_unknown_user_is_foreign_key_violation(tasks: TaskRepository):
    task = await tasks.create({"title": "Review"})
    with pytest.raises(RepositoryException) as exc_info:
        await tasks.assign(task["id"], "ghost")
    assert exc_info.value.error_type is RepositoryError.FOREIGN_KEY_VIOLATION
    assert exc_info.value.operation == "update"


async def test_bulk_update_status(tasks: TaskRepository):
    created = await tasks.create_many([{"title": "a"}, {"title": "b"}])
    result = await tasks.bulk_update_status([row["id"] for row in created], "completed")
    assert (result.success, result.count) == (True, 2)
    assert await tasks.count(where=tasks.table.c.status == "completed") == 2


async def test_bulk_update_status_validates_before_writing(tasks: TaskRepository):
    with pytest.raises(RepositoryException) as exc_info:
        await tasks.bulk_update_status(["t-1"], "blocked")
    assert exc_info.value.error_type is RepositoryError.VALIDATION_ERROR
