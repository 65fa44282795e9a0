"""
typedquery/ast.py

AST (Abstract Syntax Tree) node definitions for typedquery.

The builder functions (typedquery/builder.py) and column methods produce
instances of these dataclasses. The executor compiles them into backend statements.

Design notes:
- Every node is a frozen dataclass holding tuples; builder methods return new
  nodes and never mutate the receiver, so a query can be reused to derive variants.
- Nodes hold plain Python values. Values are type-checked when a node is built
  and encoded through the column witness when the query is compiled.
- Nothing here performs I/O. A query runs only when result() is called.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Sequence

from .errors import QueryError

if TYPE_CHECKING:
    from .datastore import Datastore
    from .result import InsertOutcome, QueryResult
    from .schema import Column, Table
    from .session import Session
    from .types import TypeWitness


# ---------- expressions ----------

class Expression:
    """
    Base class for anything that can appear in a projection: columns and aggregates.

    Subclasses provide `witness`, `qualified_name`, `tables()` and `columns()`.
    """
    witness: TypeWitness

    def tables(self) -> Iterator[Table]:
        raise NotImplementedError

    def columns(self) -> Iterator[Column]:
        raise NotImplementedError


@dataclass(frozen=True)
class Literal:
    """A literal operand. For IN the value is a tuple of values."""
    value: Any


@dataclass(frozen=True)
class Aggregate(Expression):
    """
    Aggregate pseudo-column (MIN / MAX) over a source column.

    Carries the source column's witness so the aggregated value decodes to the same type.
    """
    kind: str
    column: Column

    @property
    def witness(self) -> TypeWitness:  # type: ignore[override]
        return self.column.witness

    @property
    def qualified_name(self) -> str:
        return f"{self.kind.lower()}({self.column.qualified_name})"

    def tables(self) -> Iterator[Table]:
        return self.column.tables()

    def columns(self) -> Iterator[Column]:
        yield self.column


@dataclass(frozen=True)
class ColumnValue:
    """A column paired with a value for INSERT / UPDATE."""
    column: Column
    value: Any


# ---------- predicates ----------

class Predicate:
    """Base class for WHERE / ON predicate nodes."""

    def and_(self, other: Predicate) -> Predicate:
        return and_(self, other)

    def or_(self, other: Predicate) -> Predicate:
        return or_(self, other)

    def negate(self) -> Predicate:
        return Not(self)

    def columns(self) -> Iterator[Column]:
        raise NotImplementedError

    def tables(self) -> Iterator[Table]:
        for c in self.columns():
            yield from c.tables()


@dataclass(frozen=True)
class Comparison(Predicate):
    """
    Comparison of an expression with a literal or another column.

    Attributes:
        left: Column on the left side.
        op: SQL operator: "=", "<>", "<", "<=", ">", ">=", "IN", "LIKE", "IS NULL", "IS NOT NULL".
        right: Literal, another column, or None for the IS NULL forms.
    """
    left: Expression
    op: str
    right: Expression | Literal | None = None

    def columns(self) -> Iterator[Column]:
        yield from self.left.columns()
        if isinstance(self.right, Expression):
            yield from self.right.columns()


@dataclass(frozen=True)
class And(Predicate):
    parts: tuple[Predicate, ...]

    def columns(self) -> Iterator[Column]:
        for p in self.parts:
            yield from p.columns()


@dataclass(frozen=True)
class Or(Predicate):
    parts: tuple[Predicate, ...]

    def columns(self) -> Iterator[Column]:
        for p in self.parts:
            yield from p.columns()


@dataclass(frozen=True)
class Not(Predicate):
    inner: Predicate

    def columns(self) -> Iterator[Column]:
        return self.inner.columns()


def _require_predicates(preds: Sequence[Any], ctx: str) -> None:
    if not preds:
        raise QueryError(f"{ctx} needs at least one predicate")
    for p in preds:
        if not isinstance(p, Predicate):
            raise QueryError(f"{ctx} expects predicates, got {p!r}")


def and_(*preds: Predicate) -> Predicate:
    """Conjunction of predicates. Nested ANDs are flattened."""
    _require_predicates(preds, "and_()")
    parts: list[Predicate] = []
    for p in preds:
        parts.extend(p.parts if isinstance(p, And) else (p,))
    return parts[0] if len(parts) == 1 else And(tuple(parts))


def or_(*preds: Predicate) -> Predicate:
    """Disjunction of predicates. Nested ORs are flattened."""
    _require_predicates(preds, "or_()")
    parts: list[Predicate] = []
    for p in preds:
        parts.extend(p.parts if isinstance(p, Or) else (p,))
    return parts[0] if len(parts) == 1 else Or(tuple(parts))


# ---------- statements ----------

class Query:
    """Base class for all executable statements."""

    def tables(self) -> Iterator[Table]:
        raise NotImplementedError

    @property
    def datastore(self) -> Datastore:
        return next(iter(self.tables())).datastore

    def result(self, session: Session | None = None):
        """
        Submit this query to the executor.

        Args:
            session: Session to run in. Defaults to the active session of the
                     datastore owning the query's tables.

        Raises:
            SessionError: if no session is active.
        """
        from .exec.executor import execute

        return execute(self, session)


@dataclass(frozen=True)
class JoinClause:
    """
    INNER JOIN entry.

    Attributes:
        table: Table being joined in.
        on: Join predicate; must reference `table`.
    """
    table: Table
    on: Predicate


@dataclass(frozen=True)
class Select(Query):
    """
    SELECT statement.

    Attributes:
        projection: Projected columns/aggregates in output order.
        sources: FROM tables (usually one).
        joins: INNER JOIN entries in order.
        predicate: Optional WHERE predicate.
    """
    projection: tuple[Expression, ...]
    sources: tuple[Table, ...]
    joins: tuple[JoinClause, ...] = ()
    predicate: Predicate | None = None

    def tables(self) -> Iterator[Table]:
        yield from self.sources
        for j in self.joins:
            yield j.table

    def inner_join(self, table: Table) -> PendingJoin:
        """Start an INNER JOIN; the returned value must be completed with on()."""
        return PendingJoin(select=self, table=table)

    def where(self, predicate: Predicate) -> Select:
        """Attach a WHERE predicate; a second call ANDs with the existing one."""
        _require_predicates((predicate,), "where()")
        if self.predicate is not None:
            predicate = and_(self.predicate, predicate)
        return replace(self, predicate=predicate)

    def result(self, session: Session | None = None) -> QueryResult:
        return super().result(session)


@dataclass(frozen=True)
class PendingJoin:
    """
    An INNER JOIN waiting for its ON predicate.

    It has no where()/result(), so a join without a predicate cannot be executed.
    """
    select: Select
    table: Table

    def on(self, predicate: Predicate) -> Select:
        """
        Complete the join.

        Raises:
            QueryError: if the predicate does not reference the joined table.
        """
        _require_predicates((predicate,), "on()")
        if self.table not in set(predicate.tables()):
            raise QueryError(f"JOIN ON must reference the joined table {self.table.name}")
        return replace(self.select, joins=self.select.joins + (JoinClause(self.table, predicate),))


@dataclass(frozen=True)
class Insert(Query):
    """
    INSERT statement, one or more rows with one column set.

    Attributes:
        table: Target table.
        columns: Target columns; every row supplies values in this order.
        rows: Row values aligned with `columns`.
        batch: True when built with and_() or insert_batch(); batch inserts do not
               report per-row generated keys.
    """
    table: Table
    columns: tuple[Column, ...]
    rows: tuple[tuple[Any, ...], ...]
    batch: bool = False

    def tables(self) -> Iterator[Table]:
        yield self.table

    def and_(self, *values: ColumnValue) -> Insert:
        """
        Append another keyed row, turning this insert into a batch.

        Raises:
            QueryError: if the row targets another table or a different column set.
        """
        table, columns, row = keyed_row(values)
        if table is not self.table:
            raise QueryError(f"Batch rows must target {self.table.name}, got {table.name}")
        return replace(self, rows=self.rows + (align_row(self.columns, columns, row),), batch=True)

    def result(self, session: Session | None = None) -> InsertOutcome:
        return super().result(session)


@dataclass(frozen=True)
class Update(Query):
    """UPDATE statement."""
    table: Table
    assignments: tuple[ColumnValue, ...]
    predicate: Predicate | None = None

    def tables(self) -> Iterator[Table]:
        yield self.table

    def where(self, predicate: Predicate) -> Update:
        _require_predicates((predicate,), "where()")
        _require_single_table(self.table, predicate)
        if self.predicate is not None:
            predicate = and_(self.predicate, predicate)
        return replace(self, predicate=predicate)

    def result(self, session: Session | None = None) -> int:
        return super().result(session)


@dataclass(frozen=True)
class Delete(Query):
    """DELETE statement."""
    table: Table
    predicate: Predicate | None = None

    def tables(self) -> Iterator[Table]:
        yield self.table

    def where(self, predicate: Predicate) -> Delete:
        _require_predicates((predicate,), "where()")
        _require_single_table(self.table, predicate)
        if self.predicate is not None:
            predicate = and_(self.predicate, predicate)
        return replace(self, predicate=predicate)

    def result(self, session: Session | None = None) -> int:
        return super().result(session)


# ---------- row helpers ----------

def _require_single_table(table: Table, predicate: Predicate) -> None:
    for t in predicate.tables():
        if t is not table:
            raise QueryError(f"Predicate references {t.name}, expected only {table.name}")


def keyed_row(values: Iterable[ColumnValue]) -> tuple[Table, tuple[Column, ...], tuple[Any, ...]]:
    """
    Split a keyed row into (table, columns, values).

    Raises:
        QueryError: on an empty row, non-ColumnValue items, unbound columns,
                    columns from several tables, or a repeated column.
    """
    vals = tuple(values)
    if not vals:
        raise QueryError("A row needs at least one column value")
    for cv in vals:
        if not isinstance(cv, ColumnValue):
            raise QueryError(f"Expected column values like table.c.name(value), got {cv!r}")
        if cv.column.table is None:
            raise QueryError(f"Column {cv.column.name} is not bound to a table")

    table = vals[0].column.table
    for cv in vals:
        if cv.column.table is not table:
            raise QueryError(f"All columns in a row must belong to {table.name}, got {cv.column.qualified_name}")

    columns = tuple(cv.column for cv in vals)
    if len(set(columns)) != len(columns):
        raise QueryError(f"Repeated column in row for {table.name}")
    return table, columns, tuple(cv.value for cv in vals)


def align_row(
    expected: tuple[Column, ...],
    columns: tuple[Column, ...],
    row: tuple[Any, ...],
) -> tuple[Any, ...]:
    """
    Reorder a keyed row to the expected column order.

    Raises:
        QueryError: if the row does not supply exactly the expected column set.
    """
    if set(columns) != set(expected):
        want = ", ".join(c.name for c in expected)
        got = ", ".join(c.name for c in columns)
        raise QueryError(f"Batch rows must supply the same columns: expected ({want}), got ({got})")
    by_col = dict(zip(columns, row))
    return tuple(by_col[c] for c in expected)
