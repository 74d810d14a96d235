"""Shared fixtures: an in-memory SQLite store with the bundled schema."""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from taskhub_persistence.audit import InMemoryAuditSink
from taskhub_persistence.connections import configure_sqlite
from taskhub_persistence.database import Database
from taskhub_persistence.repositories import TaskRepository, TeamRepository, UserRepository
from taskhub_persistence.schema import metadata


@pytest.fixture
async def database():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    configure_sqlite(engine)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield Database(engine)
    await engine.dispose()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def users(database: Database, audit_sink: InMemoryAuditSink) -> UserRepository:
    return UserRepository(database, audit_sink=audit_sink)


@pytest.fixture
def teams(database: Database, audit_sink: InMemoryAuditSink) -> TeamRepository:
    return TeamRepository(database, audit_sink=audit_sink, audit_user_id="admin-1")


@pytest.fixture
def tasks(database: Database, audit_sink: InMemoryAuditSink) -> TaskRepository:
    return TaskRepository(database, audit_sink=audit_sink, audit_user_id="admin-1")


@pytest.fixture
async def alice(users: UserRepository) -> dict:
    return await users.create({"id": "u-alice", "email": "alice@example.com", "name": "Alice"})


@pytest.fixture
async def bob(users: UserRepository) -> dict:
    return await users.create({"id": "u-bob", "email": "bob@example.com", "name": "Bob"})
