"""Entity repositories built on the generic engine."""

from taskhub_persistence.repositories.tasks import TaskRepository
from taskhub_persistence.repositories.teams import TeamRepository
from taskhub_persistence.repositories.users import UserRepository

__all__ = ["TaskRepository", "TeamRepository", "UserRepository"]
