"""Classification of backing-store failures into the repository error taxonomy."""

from __future__ import annotations

import logging

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from taskhub_persistence.exceptions import RepositoryError, RepositoryException

logger = logging.getLogger(__name__)

# SQLSTATE class 23 codes (PostgreSQL and other SQL-standard drivers).
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"

_SQLSTATE_MAP: dict[str, RepositoryError] = {
    UNIQUE_VIOLATION: RepositoryError.DUPLICATE_KEY,
    FOREIGN_KEY_VIOLATION: RepositoryError.FOREIGN_KEY_VIOLATION,
    CHECK_VIOLATION: RepositoryError.VALIDATION_ERROR,
}

# sqlite3 extended result names (Python 3.11+ exposes ``sqlite_errorname``).
_SQLITE_NAME_MAP: dict[str, RepositoryError] = {
    "SQLITE_CONSTRAINT_UNIQUE": RepositoryError.DUPLICATE_KEY,
    "SQLITE_CONSTRAINT_PRIMARYKEY": RepositoryError.DUPLICATE_KEY,
    "SQLITE_CONSTRAINT_FOREIGNKEY": RepositoryError.FOREIGN_KEY_VIOLATION,
    "SQLITE_CONSTRAINT_CHECK": RepositoryError.VALIDATION_ERROR,
}

_SQLITE_MESSAGE_MAP: tuple[tuple[str, RepositoryError], ...] = (
    ("UNIQUE constraint failed", RepositoryError.DUPLICATE_KEY),
    ("FOREIGN KEY constraint failed", RepositoryError.FOREIGN_KEY_VIOLATION),
    ("CHECK constraint failed", RepositoryError.VALIDATION_ERROR),
)

_MESSAGES: dict[RepositoryError, str] = {
    RepositoryError.DUPLICATE_KEY: "Duplicate key violation",
    RepositoryError.FOREIGN_KEY_VIOLATION: "Foreign key constraint violation",
    RepositoryError.VALIDATION_ERROR: "Check constraint violation",
}


def _native_error(exc: BaseException) -> BaseException:
    """Unwrap the DBAPI error carried by a SQLAlchemy ``DBAPIError``."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return exc.orig
    return exc


def _sqlstate(native: BaseException) -> str | None:
    for attr in ("sqlstate", "pgcode", "code"):
        value = getattr(native, attr, None)
        if isinstance(value, str) and len(value) == 5:
            return value
    return None


def classify_error(exc: BaseException) -> RepositoryError:
    """Map a store failure to a :class:`RepositoryError`.

    Only constraint violations get a specific type; everything else is
    ``UNKNOWN_ERROR``.
    """
    if isinstance(exc, RepositoryException):
        return exc.error_type

    native = _native_error(exc)

    state = _sqlstate(native)
    if state is not None:
        return _SQLSTATE_MAP.get(state, RepositoryError.UNKNOWN_ERROR)

    name = getattr(native, "sqlite_errorname", None)
    if isinstance(name, str) and name in _SQLITE_NAME_MAP:
        return _SQLITE_NAME_MAP[name]

    text = str(native)
    for prefix, error_type in _SQLITE_MESSAGE_MAP:
        if prefix in text:
            return error_type

    return RepositoryError.UNKNOWN_ERROR


def to_repository_exception(
    exc: BaseException,
    *,
    entity_name: str,
    operation: str,
) -> RepositoryException:
    """Wrap *exc* in a classified :class:`RepositoryException`.

    A ``RepositoryException`` is returned unchanged so that validation
    failures raised by entity repositories keep their original type and
    message.
    """
    if isinstance(exc, RepositoryException):
        return exc

    error_type = classify_error(exc)
    if error_type in _MESSAGES:
        message = _MESSAGES[error_type]
    elif isinstance(exc, SQLAlchemyError):
        message = f"Error in {operation}: {type(_native_error(exc)).__name__}"
    else:
        message = f"Error in {operation}: {exc}"

    logger.error("%s %s failed: %s (%s)", entity_name, operation, error_type.value, type(exc).__name__)
    return RepositoryException(
        error_type,
        message,
        original_error=exc,
        entity_name=entity_name,
        operation=operation,
    )
