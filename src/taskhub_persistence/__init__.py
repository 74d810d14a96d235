"""Taskhub Persistence: generic async repository engine for the Taskhub data layer."""

from taskhub_persistence.audit import (
    AuditAction,
    AuditEmitter,
    AuditEvent,
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
)
from taskhub_persistence.columns import ColumnMap
from taskhub_persistence.connections import ConnectionManager, ConnectionProfile, InvalidConnectionURL
from taskhub_persistence.database import Database, UnitOfWork
from taskhub_persistence.errors import classify_error, to_repository_exception
from taskhub_persistence.exceptions import RepositoryError, RepositoryException
from taskhub_persistence.filters import ComplexFilter, DateRange, FilterCondition, build_predicate
from taskhub_persistence.options import (
    AuditConfig,
    CacheConfig,
    FilterOptions,
    PaginationOptions,
    QueryOptions,
    SearchOptions,
)
from taskhub_persistence.pagination import BulkOperationResult, PageInfo, PaginatedResult, paginate
from taskhub_persistence.registry import RepositoryRegistry, build_default_registry
from taskhub_persistence.repository import Repository
from taskhub_persistence.soft_delete import SoftDeleteRepository

__all__ = [
    "AuditAction",
    "AuditConfig",
    "AuditEmitter",
    "AuditEvent",
    "AuditSink",
    "BulkOperationResult",
    "CacheConfig",
    "ColumnMap",
    "ComplexFilter",
    "ConnectionManager",
    "ConnectionProfile",
    "Database",
    "DateRange",
    "FilterCondition",
    "FilterOptions",
    "InMemoryAuditSink",
    "InvalidConnectionURL",
    "LoggingAuditSink",
    "PageInfo",
    "PaginatedResult",
    "PaginationOptions",
    "QueryOptions",
    "Repository",
    "RepositoryError",
    "RepositoryException",
    "RepositoryRegistry",
    "SearchOptions",
    "SoftDeleteRepository",
    "UnitOfWork",
    "build_default_registry",
    "build_predicate",
    "classify_error",
    "paginate",
    "to_repository_exception",
]
