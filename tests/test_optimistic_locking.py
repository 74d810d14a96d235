"""Tests for version-checked updates."""

import pytest
from taskhub_persistence.exceptions import RepositoryError, RepositoryException
from taskhub_persistence.repositories import TaskRepository, TeamRepository


async def test_new_rows_start_at_version_one(tasks: TaskRepository):
    task = await tasks.create({"title": "Write docs"})
    assert task["version"] == 1


async def test_matching_version_bumps_by_one(tasks: TaskRepository):
    task = await tasks.create({"title": "Write docs"})

    updated = await tasks.update(task["id"], {"title": "Write more docs"}, expected_version=1)
    assert updated["version"] == 2
    assert updated["title"] == "Write more docs"

    again = await tasks.update(task["id"], {"status": "review"}, expected_version=2)
    assert again["version"] == 3


async def test_stale_version_is_rejected(tasks: TaskRepository):
    task = await tasks.create({"title": "Write docs"})
    await tasks.update(task["id"], {"title": "first writer"}, expected_version=1)

    with pytest.raises(RepositoryException) as exc_info:
        await tasks.update(task["id"], {"title": "second writer"}, expected_version=1)

    exc = exc_info.value
    assert exc.error_type is RepositoryError.VALIDATION_ERROR
    assert exc.message == "Optimistic locking failed - record was modified by another user"
    stored = await tasks.find_by_id(task["id"])
    assert stored["title"] == "first writer"
    assert stored["version"] == 2


async def test_missing_row_with_expected_version_is_a_conflict(tasks: TaskRepository):
    with pytest.raises(RepositoryException) as exc_info:
        await tasks.update("no-such-task", {"title": "x"}, expected_version=1)
    assert exc_info.value.error_type is RepositoryError.VALIDATION_ERROR


async def test_update_without_version_leaves_version_alone(tasks: TaskRepository):
    task = await tasks.create({"title": "Write docs"})
    updated = await tasks.update(task["id"], {"title": "unchecked"})
    assert updated["version"] == 1


async def test_stale_conflict_emits_no_audit_event(tasks: TaskRepository, audit_sink):
    task = await tasks.create({"title": "Write docs"})
    await tasks.update(task["id"], {"title": "first"}, expected_version=1)
    audit_sink.clear()

    with pytest.raises(RepositoryException):
        await tasks.update(task["id"], {"title": "second"}, expected_version=1)
    assert len(audit_sink) == 0


async def test_expected_version_on_unversioned_table(teams: TeamRepository, alice: dict):
    team = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    updated = await teams.update(team["id"], {"name": "Platform"}, expected_version=7)
    assert updated["name"] == "Platform"
    assert "version" not in updated


async def test_update_status_uses_expected_version(tasks: TaskRepository):
    task = await tasks.create({"title": "Ship"})
    updated = await tasks.update_status(task["id"], "in-progress", expected_version=1)
    assert updated["status"] == "in-progress"
    assert updated["version"] == 2

    with pytest.raises(RepositoryException):
        await tasks.update_status(task["id"], "completed", expected_version=1)
