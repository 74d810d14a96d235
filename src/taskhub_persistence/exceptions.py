"""Domain exceptions for the persistence layer.

Driver exceptions raised by the backing store are caught and re-raised as a
:class:`RepositoryException` carrying one of the :class:`RepositoryError`
types, so that upstream callers never branch on raw database errors.
"""

from __future__ import annotations

from enum import Enum


class RepositoryError(str, Enum):
    """Closed taxonomy of repository failures."""

    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_KEY = "DUPLICATE_KEY"
    FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TRANSACTION_ERROR = "TRANSACTION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class RepositoryException(Exception):
    """Typed failure raised by every repository operation.

    Attributes:
        error_type: The classified :class:`RepositoryError`.
        message: A sanitised description of what went wrong.
        original_error: The underlying store failure, if any.
        entity_name: The repository entity involved, when known.
        operation: The operation that failed (e.g. ``"create"``, ``"update"``).
    """

    def __init__(
        self,
        error_type: RepositoryError,
        message: str,
        *,
        original_error: BaseException | None = None,
        entity_name: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.error_type = RepositoryError(error_type)
        self.message = message
        self.original_error = original_error
        self.entity_name = entity_name
        self.operation = operation
        prefix = f"[{entity_name}] {operation}: " if entity_name and operation else ""
        super().__init__(f"{prefix}{message}")
        if original_error is not None:
            self.__cause__ = original_error

    def __repr__(self) -> str:
        return f"RepositoryException({self.error_type.value}, {self.message!r})"


def not_found(entity_name: str, id: str, *, operation: str = "find_by_id") -> RepositoryException:
    """Build the ``NOT_FOUND`` exception callers raise when they require a row."""
    return RepositoryException(
        RepositoryError.NOT_FOUND,
        f"{entity_name} '{id}' not found",
        entity_name=entity_name,
        operation=operation,
    )


def validation_error(
    message: str,
    *,
    entity_name: str | None = None,
    operation: str | None = None,
    original_error: BaseException | None = None,
) -> RepositoryException:
    """Build a ``VALIDATION_ERROR`` exception."""
    return RepositoryException(
        RepositoryError.VALIDATION_ERROR,
        message,
        original_error=original_error,
        entity_name=entity_name,
        operation=operation,
    )
