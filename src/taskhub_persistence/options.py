"""Query options and per-repository configuration models."""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from taskhub_persistence.exceptions import validation_error
from taskhub_persistence.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, validate_limit

SortOrder = Literal["asc", "desc"]

M = TypeVar("M", bound=BaseModel)
Q = TypeVar("Q", bound="QueryOptions")


class PaginationOptions(BaseModel):
    """Page window and simple single-column ordering."""

    page: int = Field(default=DEFAULT_PAGE, ge=1)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, description="Rows per page, capped at 1000.")
    sort_by: str | None = None
    sort_order: SortOrder = "desc"

    model_config = {"extra": "forbid"}

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, v: int) -> int:
        return validate_limit(v)


class FilterOptions(BaseModel):
    """Opaque predicate plus explicit ordering and window.

    ``where`` and ``order_by`` hold SQLAlchemy expressions and are passed to
    the store untouched.
    """

    where: Any = None
    order_by: list[Any] | None = None
    limit: int | None = Field(default=None, ge=1)
    offset: int | None = Field(default=None, ge=0)

    model_config = {"extra": "forbid", "arbitrary_types_allowed": True}


class QueryOptions(PaginationOptions):
    """Options accepted by ``Repository.find_many``."""

    where: Any = None
    order_by: list[Any] | None = None

    model_config = {"extra": "forbid", "arbitrary_types_allowed": True}


class SearchOptions(QueryOptions):
    """Options accepted by ``Repository.search``."""

    query: str = ""
    fields: list[str] | None = None


class CacheConfig(BaseModel):
    """Declarative cache settings read by an external caching layer."""

    enabled: bool = False
    ttl: int = Field(default=300, ge=0, description="Time to live in seconds.")
    key_prefix: str = ""

    model_config = {"extra": "forbid"}


class AuditConfig(BaseModel):
    """Controls whether mutations emit audit events."""

    enabled: bool = False
    track_changes: bool = False
    user_id: str | None = None

    model_config = {"extra": "forbid"}


def build_options(
    model: type[M],
    options: BaseModel | None,
    overrides: dict[str, Any],
    *,
    entity_name: str,
    operation: str,
) -> M:
    """Return *options* (or a fresh *model*) with *overrides* applied.

    Invalid values surface as a ``VALIDATION_ERROR`` repository exception.
    """
    try:
        if options is None:
            return model(**overrides)
        if isinstance(options, model) and not overrides:
            return options
        return model(**{**dict(options), **overrides})
    except ValidationError as exc:
        raise validation_error(
            f"Invalid {model.__name__}: {exc.error_count()} validation error(s)",
            entity_name=entity_name,
            operation=operation,
            original_error=exc,
        ) from exc


def build_query_options(
    model: type[Q],
    options: BaseModel | None,
    overrides: dict[str, Any],
    *,
    entity_name: str,
    operation: str,
) -> Q:
    """:func:`build_options` for paginated reads, also accepting the filter window.

    A :class:`FilterOptions` (or ``offset``/``limit`` keywords) contributes
    its ``where``, ``order_by`` and ``limit``; unset fields keep the page
    defaults.  An ``offset`` is turned into the page it starts, and must be
    a multiple of the limit.
    """
    fields = dict(overrides)
    if isinstance(options, FilterOptions):
        carried = {
            "where": options.where,
            "order_by": options.order_by,
            "limit": options.limit,
            "offset": options.offset,
        }
        fields = {**{k: v for k, v in carried.items() if v is not None}, **fields}
        options = None
    if "limit" in fields and fields["limit"] is None:
        del fields["limit"]

    offset = fields.pop("offset", None)
    if offset is not None:
        if not isinstance(offset, int) or offset < 0:
            raise validation_error(
                f"offset must be >= 0, got {offset!r}",
                entity_name=entity_name,
                operation=operation,
            )
        limit = fields.get("limit", getattr(options, "limit", DEFAULT_LIMIT))
        # an invalid limit is reported by build_options below
        if isinstance(limit, int) and limit >= 1:
            limit = validate_limit(limit)
            if offset % limit:
                raise validation_error(
                    f"offset {offset} is not a multiple of limit {limit}",
                    entity_name=entity_name,
                    operation=operation,
                )
            fields.setdefault("page", offset // limit + 1)
    return build_options(model, options, fields, entity_name=entity_name, operation=operation)
