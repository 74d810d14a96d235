"""Structured filter conditions compiled into SQLAlchemy predicates."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

import sqlalchemy as sa
from pydantic import BaseModel, Field, model_validator

from taskhub_persistence.columns import ColumnMap
from taskhub_persistence.exceptions import validation_error

Operator = Literal["eq", "ne", "gt", "gte", "lt", "lte", "in", "nin", "like", "ilike", "between"]


class FilterCondition(BaseModel):
    """A single ``field <operator> value`` comparison."""

    field: str
    operator: Operator = "eq"
    value: Any = None

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _check_value_shape(self) -> FilterCondition:
        if self.operator in ("in", "nin") and not isinstance(self.value, (list, tuple, set, frozenset)):
            raise ValueError(f"operator '{self.operator}' requires a list value")
        if self.operator == "between":
            if not isinstance(self.value, (list, tuple)) or len(self.value) != 2:
                raise ValueError("operator 'between' requires a [low, high] pair")
        return self


class ComplexFilter(BaseModel):
    """Conditions combined with AND, OR and NOT."""

    and_: list[FilterCondition | ComplexFilter] = Field(default_factory=list, alias="and")
    or_: list[FilterCondition | ComplexFilter] = Field(default_factory=list, alias="or")
    not_: FilterCondition | ComplexFilter | None = Field(default=None, alias="not")

    model_config = {"extra": "forbid", "populate_by_name": True}


ComplexFilter.model_rebuild()


class DateRange(BaseModel):
    """Inclusive datetime window; either bound may be open."""

    start: datetime | None = Field(default=None, alias="from")
    end: datetime | None = Field(default=None, alias="to")

    model_config = {"extra": "forbid", "populate_by_name": True}

    @model_validator(mode="after")
    def _check_order(self) -> DateRange:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("date range start must not be after end")
        return self


def _column(columns: ColumnMap, name: str) -> sa.Column:
    col = columns.resolve(name)
    if col is None:
        raise validation_error(
            f"Unknown filter field '{name}'",
            entity_name=columns.table.name,
            operation="filter",
        )
    return col


def _condition(columns: ColumnMap, cond: FilterCondition) -> sa.ColumnElement[bool]:
    col = _column(columns, cond.field)
    op = cond.operator
    value = cond.value
    if op == "eq":
        return col.is_(None) if value is None else col == value
    if op == "ne":
        return col.is_not(None) if value is None else col != value
    if op == "gt":
        return col > value
    if op == "gte":
        return col >= value
    if op == "lt":
        return col < value
    if op == "lte":
        return col <= value
    if op == "in":
        return col.in_(list(value))
    if op == "nin":
        return col.not_in(list(value))
    if op == "like":
        return col.like(value)
    if op == "ilike":
        return col.ilike(value)
    low, high = value
    return col.between(low, high)


def build_predicate(
    columns: ColumnMap,
    conditions: FilterCondition | ComplexFilter | list[FilterCondition | ComplexFilter],
) -> sa.ColumnElement[bool] | None:
    """Compile *conditions* into a predicate over ``columns.table``.

    A bare list is treated as an AND of its members.  Returns ``None`` when
    there is nothing to filter on.
    """
    if isinstance(conditions, list):
        conditions = ComplexFilter(and_=conditions)
    if isinstance(conditions, FilterCondition):
        return _condition(columns, conditions)

    clauses: list[sa.ColumnElement[bool]] = []
    anded = [p for p in (build_predicate(columns, item) for item in conditions.and_) if p is not None]
    if anded:
        clauses.append(sa.and_(*anded))
    ored = [p for p in (build_predicate(columns, item) for item in conditions.or_) if p is not None]
    if ored:
        clauses.append(sa.or_(*ored))
    if conditions.not_ is not None:
        negated = build_predicate(columns, conditions.not_)
        if negated is not None:
            clauses.append(sa.not_(negated))

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return sa.and_(*clauses)


def date_range_predicate(column: sa.Column, window: DateRange) -> sa.ColumnElement[bool] | None:
    """Return ``start <= column <= end`` for the bounds that are set."""
    clauses: list[sa.ColumnElement[bool]] = []
    if window.start is not None:
        clauses.append(column >= window.start)
    if window.end is not None:
        clauses.append(column <= window.end)
    if not clauses:
        return None
    return sa.and_(*clauses)


def combine(*predicates: Any) -> sa.ColumnElement[bool] | None:
    """AND together the predicates that are not ``None``."""
    present = [p for p in predicates if p is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return sa.and_(*present)
