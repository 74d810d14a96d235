"""Typed column descriptor binding logical field names to table columns."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import sqlalchemy as sa


def _optional(table: sa.Table, key: str | None) -> sa.Column | None:
    if key is None:
        return None
    return table.c.get(key)


@dataclass(frozen=True)
class ColumnMap:
    """Resolved columns the engine needs for one table.

    Built once per repository so the engine never looks columns up by name
    at call time except through :meth:`resolve`, which only consults the
    explicit ``fields`` mapping.
    """

    table: sa.Table
    primary_key: sa.Column
    version: sa.Column | None = None
    updated_at: sa.Column | None = None
    deleted_at: sa.Column | None = None
    fields: Mapping[str, sa.Column] = field(default_factory=dict)
    searchable: tuple[sa.Column, ...] = ()

    @classmethod
    def for_table(
        cls,
        table: sa.Table,
        *,
        primary_key: str = "id",
        version: str | None = "version",
        updated_at: str | None = "updated_at",
        deleted_at: str | None = "deleted_at",
        searchable: Iterable[str] = (),
    ) -> ColumnMap:
        """Build a map for *table*.

        Optional columns that the table does not define resolve to ``None``.
        A missing primary key column or searchable column raises ``ValueError``.
        """
        if primary_key not in table.c:
            raise ValueError(f"Table '{table.name}' has no column '{primary_key}' for the primary key.")
        search_cols: list[sa.Column] = []
        for name in searchable:
            if name not in table.c:
                raise ValueError(f"Table '{table.name}' has no searchable column '{name}'.")
            search_cols.append(table.c[name])
        return cls(
            table=table,
            primary_key=table.c[primary_key],
            version=_optional(table, version),
            updated_at=_optional(table, updated_at),
            deleted_at=_optional(table, deleted_at),
            fields={col.key: col for col in table.c},
            searchable=tuple(search_cols),
        )

    @property
    def primary_key_name(self) -> str:
        return self.primary_key.key

    def resolve(self, name: str) -> sa.Column | None:
        """Return the column registered under *name*, or ``None``."""
        return self.fields.get(name)

    def unknown_keys(self, data: Mapping[str, object]) -> list[str]:
        """Return the keys of *data* that are not columns of the table."""
        return [key for key in data if key not in self.fields]
