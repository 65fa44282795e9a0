"""
typedquery/builder.py

Entry points for building query ASTs.

    select(coffees.c.name, suppliers.c.name)
        .from_(coffees)
        .inner_join(suppliers).on(coffees.c.sup_id.equals(suppliers.c.id))
        .where(coffees.c.price.less_than(9.0))

    insert(suppliers.c.id(101), suppliers.c.name("Acme, Inc.")).and_(...)
    insert_batch([[...], [...]])
    insert_into(suppliers, 101, "Acme, Inc.", ...)
    update(coffees.c.name("updated name")).where(coffees.c.id.equals(1))
    delete(coffees).where(coffees.c.id.equals(1))

All functions are pure: they validate their input against the schema and return
AST values (typedquery/ast.py). Nothing runs until result() is called.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from .ast import ColumnValue, Delete, Expression, Insert, Select, Update, align_row, keyed_row
from .errors import QueryError
from .schema import Column, Table


@dataclass(frozen=True)
class SelectBuilder:
    """A projection waiting for its FROM tables."""
    projection: tuple[Expression, ...]

    def from_(self, *tables: Table) -> Select:
        """
        Set the FROM tables.

        Raises:
            QueryError: if no table is given or a table is repeated.
        """
        if not tables:
            raise QueryError("from_() needs at least one table")
        for t in tables:
            if not isinstance(t, Table):
                raise QueryError(f"from_() expects tables, got {t!r}")
        if len(set(tables)) != len(tables):
            raise QueryError("A table may appear only once in FROM")
        return Select(projection=self.projection, sources=tuple(tables))


def select(*projection: Expression) -> SelectBuilder:
    """
    Start a SELECT with the given projection.

    Raises:
        QueryError: on an empty projection or items that are not columns/aggregates.
    """
    if not projection:
        raise QueryError("select() needs at least one column")
    for p in projection:
        if not isinstance(p, Expression):
            raise QueryError(f"select() expects columns or aggregates, got {p!r}")
        if isinstance(p, Column) and p.table is None:
            raise QueryError(f"Column {p.name} is not bound to a table")
    return SelectBuilder(projection=tuple(projection))


def insert(*values: ColumnValue) -> Insert:
    """Single-row INSERT from keyed column values."""
    table, columns, row = keyed_row(values)
    return Insert(table=table, columns=columns, rows=(row,))


def insert_into(table: Table, *values: Any) -> Insert:
    """
    Single-row INSERT with values in the table's declared column order.

    When the table has an AUTOINCREMENT column and one value fewer than the
    column count is given, the AUTOINCREMENT column is left to the backend.
    """
    columns, row = _positional_row(table, values)
    return Insert(table=table, columns=columns, rows=(row,))


def insert_batch(rows: Iterable[Sequence[Any]], table: Table | None = None) -> Insert:
    """
    Batch INSERT built directly from row value lists.

    Args:
        rows: Either keyed rows (sequences of ColumnValue) or, when `table` is
              given, positional rows in the table's declared column order.
        table: Target table for positional rows.

    Returns:
        Insert with batch=True.

    Raises:
        QueryError: on no rows, or rows that do not share one column set.
    """
    rows = list(rows)
    if not rows:
        raise QueryError("insert_batch() needs at least one row")

    if table is not None:
        columns, first = _positional_row(table, rows[0])
        out = [first]
        for r in rows[1:]:
            cols, row = _positional_row(table, r)
            if cols != columns:
                raise QueryError(
                    f"Batch rows must supply the same columns: expected {len(columns)} values, got {len(cols)}"
                )
            out.append(row)
        return Insert(table=table, columns=columns, rows=tuple(out), batch=True)

    target, columns, first = keyed_row(rows[0])
    out = [first]
    for r in rows[1:]:
        t, cols, row = keyed_row(r)
        if t is not target:
            raise QueryError(f"Batch rows must target {target.name}, got {t.name}")
        out.append(align_row(columns, cols, row))
    return Insert(table=target, columns=columns, rows=tuple(out), batch=True)


def update(*values: ColumnValue) -> Update:
    """UPDATE assigning the given column values; add where() to restrict rows."""
    table, _, _ = keyed_row(values)
    return Update(table=table, assignments=tuple(values))


def delete(table: Table) -> Delete:
    """DELETE from `table`; add where() to restrict rows."""
    if not isinstance(table, Table):
        raise QueryError(f"delete() expects a table, got {table!r}")
    return Delete(table=table)


def _positional_row(table: Table, values: Sequence[Any]) -> tuple[tuple[Column, ...], tuple[Any, ...]]:
    values = tuple(values)
    if any(isinstance(v, ColumnValue) for v in values):
        raise QueryError("Positional rows take plain values, not column values")

    columns = table.columns
    auto = table.auto_increment_column
    if auto is not None and len(values) == len(columns) - 1:
        columns = tuple(c for c in columns if c is not auto)
    if len(values) != len(columns):
        raise QueryError(f"{table.name} expects {len(table.columns)} values in column order, got {len(values)}")

    for c, v in zip(columns, values):
        c._check_value(v)
    return columns, values
