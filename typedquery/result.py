"""
typedquery/result.py

Result objects returned by the executor.

The engine returns one of:
- QueryResult: forward-only cursor over a SELECT, bound to the session that ran it
- InsertOutcome: rows affected and generated keys for INSERT
- int: rows affected for UPDATE / DELETE

Rows are decoded with the witnesses of the projected columns as they are fetched,
so a Row is a plain value that stays usable after the session closes. The cursor
itself is not: reading it after its session closed raises SessionError.
Use materialize() to keep rows beyond the session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator, Sequence

from .ast import Expression
from .errors import DecodeError, QueryError

if TYPE_CHECKING:
    from .backend.base import RowCursor, Statement
    from .session import Session

BATCH_KEY_SENTINEL = -1


@dataclass(frozen=True)
class InsertOutcome:
    """
    Represents successful execution of an INSERT.

    Attributes:
        rows_affected: Number of rows inserted.
        generated_keys: One key per row when the table has an AUTOINCREMENT column,
                        else empty. Batch inserts report BATCH_KEY_SENTINEL per row.
    """
    rows_affected: int
    generated_keys: tuple[int, ...] = ()

    @property
    def generated_key(self) -> int | None:
        """The generated key of a single-row insert, else None."""
        if len(self.generated_keys) != 1:
            return None
        return self.generated_keys[0]


class Row:
    """
    One decoded result row.

    Supports keyed access by projected column/aggregate (row[table.c.name]),
    positional access (row[0]) and tuple destructuring (name, price = row).
    """

    __slots__ = ("_projection", "_values", "_positions")

    def __init__(self, projection: tuple[Expression, ...], values: tuple[Any, ...]):
        self._projection = projection
        self._values = values
        self._positions = {e: i for i, e in enumerate(projection)}

    @classmethod
    def decode(cls, projection: tuple[Expression, ...], raw: Sequence[Any]) -> Row:
        """
        Decode a raw backend row.

        Raises:
            DecodeError: on a width mismatch or a value a witness cannot decode.
        """
        raw = tuple(raw)
        if len(raw) != len(projection):
            raise DecodeError(f"Backend returned {len(raw)} values for a projection of {len(projection)}")
        return cls(projection, tuple(e.witness.decode_value(v) for e, v in zip(projection, raw)))

    def __getitem__(self, key: Expression | int) -> Any:
        if isinstance(key, int):
            return self._values[key]
        pos = self._positions.get(key)
        if pos is None:
            name = getattr(key, "qualified_name", repr(key))
            raise QueryError(f"{name} is not part of the projection")
        return self._values[pos]

    def get(self, key: Expression, default: Any = None) -> Any:
        pos = self._positions.get(key)
        return default if pos is None else self._values[pos]

    def __call__(self, key: Expression) -> Any:
        return self[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def as_tuple(self) -> tuple[Any, ...]:
        return self._values

    def as_dict(self) -> dict[str, Any]:
        """Values keyed by qualified name (e.g. 'coffees.name', 'max(coffees.price)')."""
        return {e.qualified_name: v for e, v in zip(self._projection, self._values)}

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Row):
            return self._values == other._values
        if isinstance(other, tuple):
            return self._values == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        return f"Row{self._values!r}"


class QueryResult:
    """
    Represents the output of a SELECT query as a forward-only cursor.

    Attributes:
        projection: Projected expressions in output order.
        statement: Compiled statement that produced the rows.
    """

    def __init__(
        self,
        session: Session,
        projection: tuple[Expression, ...],
        cursor: RowCursor,
        statement: Statement,
    ):
        self.session = session
        self.projection = projection
        self.statement = statement
        self._cursor = cursor
        self._done = False

    @property
    def columns(self) -> list[str]:
        """Output column names, qualified like 'table.column'."""
        return [e.qualified_name for e in self.projection]

    def __iter__(self) -> Iterator[Row]:
        return self

    def __next__(self) -> Row:
        self.session.require_active()
        if self._done:
            raise StopIteration
        raw = self._cursor.fetchone()
        if raw is None:
            self._done = True
            self._cursor.close()
            raise StopIteration
        return Row.decode(self.projection, raw)

    def materialize(self) -> list[Row]:
        """
        Copy all remaining rows into a list that outlives the session.

        Raises:
            SessionError: if the owning session already closed.
        """
        self.session.require_active()
        return list(self)

    def first_or_none(self) -> Row | None:
        return next(self, None)

    def first(self) -> Row:
        """
        Return the next row.

        Raises:
            QueryError: if there are no more rows.
        """
        row = self.first_or_none()
        if row is None:
            raise QueryError("Query returned no rows")
        return row

    def __repr__(self) -> str:
        return f"QueryResult(columns={self.columns}, sql={self.statement.sql!r})"
