"""Tests for tombstoning through deleted_at."""

import pytest
from taskhub_persistence.database import Database
from taskhub_persistence.exceptions import RepositoryError, RepositoryException
from taskhub_persistence.options import FilterOptions
from taskhub_persistence.repositories import TeamRepository
from taskhub_persistence.schema import users as users_table
from taskhub_persistence.soft_delete import SoftDeleteRepository


@pytest.fixture
async def two_teams(teams: TeamRepository, alice: dict) -> tuple[dict, dict]:
    core = await teams.create({"name": "Core", "created_by_id": alice["id"]})
    web = await teams.create({"name": "Web", "created_by_id": alice["id"]})
    return core, web


async def test_soft_delete_stamps_deleted_at(teams: TeamRepository, two_teams):
    core, _ = two_teams
    deleted = await teams.soft_delete(core["id"])
    assert deleted["deleted_at"] is not None
    # the row is still there
    assert await teams.exists(core["id"]) is True


async def test_soft_delete_missing_row(teams: TeamRepository):
    assert await teams.soft_delete("ghost") is None


async def test_find_deleted_and_active(teams: TeamRepository, two_teams):
    core, web = two_teams
    await teams.soft_delete(core["id"])

    deleted = await teams.find_deleted()
    assert [row["id"] for row in deleted.data] == [core["id"]]
    assert deleted.pagination.total == 1

    active = await teams.find_active()
    assert [row["id"] for row in active.data] == [web["id"]]

    everything = await teams.find_with_deleted()
    assert everything.pagination.total == 2


async def test_find_deleted_ands_caller_where(teams: TeamRepository, two_teams):
    core, web = two_teams
    await teams.soft_delete(core["id"])
    await teams.soft_delete(web["id"])

    page = await teams.find_deleted(where=teams.table.c.name == "Web")
    assert [row["id"] for row in page.data] == [web["id"]]


async def test_restore(teams: TeamRepository, two_teams):
    core, _ = two_teams
    await teams.soft_delete(core["id"])
    restored = await teams.restore(core["id"])
    assert restored["deleted_at"] is None
    assert (await teams.find_deleted()).data == []


async def test_table_without_deleted_at(database: Database):
    repo = SoftDeleteRepository(database, users_table, entity_name="User")
    for call in (repo.find_deleted(), repo.soft_delete("u-1"), repo.restore("u-1"), repo.find_active()):
        with pytest.raises(RepositoryException) as exc_info:
            await call
        assert exc_info.value.error_type is RepositoryError.VALIDATION_ERROR
        assert exc_info.value.message == "Table does not support soft delete"


async def test_find_with_deleted_works_without_deleted_at(database: Database):
    repo = SoftDeleteRepository(database, users_table)
    page = await repo.find_with_deleted()
    assert page.data == []


async def test_find_deleted_accepts_filter_options(teams: TeamRepository, two_teams):
    core, web = two_teams
    await teams.soft_delete(core["id"])
    await teams.soft_delete(web["id"])

    page = await teams.find_deleted(FilterOptions(where=teams.table.c.name == "Core"))
    assert [row["id"] for row in page.data] == [core["id"]]
