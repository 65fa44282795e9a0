"""
typedquery/schema.py

Schema model: tables, columns and column properties.

Responsibilities:
- Define columns with a resolved type witness and a set of properties
  (PRIMARY KEY, AUTOINCREMENT, UNIQUE, NOT NULL, FOREIGN KEY).
- Validate table definitions before they are registered in a Datastore.
- Give columns the predicate/aggregate/value-building methods used by the query builder.

Design notes:
- Columns and tables compare by identity. A bound column belongs to exactly one table.
- We support a single-column PRIMARY KEY per table.
- Validation happens at definition time; a failed definition registers nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Iterable, Iterator, TypeVar

from .ast import Aggregate, ColumnValue, Comparison, Expression, Literal
from .errors import QueryError, SchemaError
from .types import DEFAULT_REGISTRY, TypeRegistry, TypeWitness

if TYPE_CHECKING:
    from .datastore import Datastore

T = TypeVar("T")


# ---------- properties ----------

@dataclass(frozen=True)
class ColumnProperty:
    """A flag-style column property such as PRIMARY KEY."""
    name: str

    def __repr__(self) -> str:
        return self.name


PrimaryKey = ColumnProperty("PRIMARY KEY")
AutoIncrement = ColumnProperty("AUTOINCREMENT")
Unique = ColumnProperty("UNIQUE")
NotNull = ColumnProperty("NOT NULL")


@dataclass(frozen=True)
class ForeignKey:
    """
    Referential constraint to another column.

    Attributes:
        target: Bound column in an already registered table.
    """
    target: Column
    name: ClassVar[str] = "FOREIGN KEY"


Property = ColumnProperty | ForeignKey

_ORDERING_OPS = frozenset({"<", "<=", ">", ">="})


# ---------- columns ----------

@dataclass(frozen=True, eq=False)
class Column(Expression, Generic[T]):
    """
    A table column.

    Attributes:
        name: Column name (unique within its table).
        witness: Type witness used to encode/decode values.
        properties: Column properties in declaration order.
        table: Owning table; None until the column is bound by Datastore.define_table.
    """
    name: str
    witness: TypeWitness[T]
    properties: tuple[Property, ...] = ()
    table: Table | None = field(default=None, repr=False)

    @property
    def table_name(self) -> str | None:
        return self.table.name if self.table is not None else None

    @property
    def qualified_name(self) -> str:
        if self.table is None:
            return self.name
        return f"{self.table.name}.{self.name}"

    @property
    def primary_key(self) -> bool:
        return PrimaryKey in self.properties

    @property
    def auto_increment(self) -> bool:
        return AutoIncrement in self.properties

    @property
    def unique(self) -> bool:
        return Unique in self.properties

    @property
    def not_null(self) -> bool:
        return NotNull in self.properties

    @property
    def foreign_key(self) -> ForeignKey | None:
        return next((p for p in self.properties if isinstance(p, ForeignKey)), None)

    def tables(self) -> Iterator[Table]:
        if self.table is not None:
            yield self.table

    def columns(self) -> Iterator[Column]:
        yield self

    # ---------- values ----------

    def __call__(self, value: T | None) -> ColumnValue:
        """
        Pair a value with this column for insert/update.

        Raises:
            QueryError: if the value does not match the column type.
        """
        self._check_value(value)
        return ColumnValue(column=self, value=value)

    def _check_value(self, value: Any) -> None:
        if not self.witness.check(value):
            raise QueryError(
                f"Type error: {self.qualified_name} expects {self.witness.name}, got {type(value).__name__}"
            )
        self.witness.encode_value(value)

    def _require_orderable(self, what: str) -> None:
        if not self.witness.orderable:
            raise QueryError(
                f"{what} is not supported on {self.qualified_name}: "
                f"{self.witness.name} values have no backend order"
            )

    # ---------- predicates ----------

    def _compare(self, op: str, other: Any) -> Comparison:
        if op in _ORDERING_OPS:
            self._require_orderable(op)
        if isinstance(other, Column):
            if other.witness is not self.witness:
                raise QueryError(
                    f"Cannot compare {self.qualified_name} ({self.witness.name}) "
                    f"with {other.qualified_name} ({other.witness.name})"
                )
            return Comparison(left=self, op=op, right=other)
        if isinstance(other, Expression):
            raise QueryError(f"Cannot compare {self.qualified_name} with {other!r}")
        if other is None:
            raise QueryError(f"Use is_null()/is_not_null() to compare {self.qualified_name} with NULL")
        self._check_value(other)
        return Comparison(left=self, op=op, right=Literal(other))

    def equals(self, other: T | Column[T]) -> Comparison:
        return self._compare("=", other)

    def not_equals(self, other: T | Column[T]) -> Comparison:
        return self._compare("<>", other)

    def less_than(self, other: T | Column[T]) -> Comparison:
        return self._compare("<", other)

    def less_or_equal(self, other: T | Column[T]) -> Comparison:
        return self._compare("<=", other)

    def greater_than(self, other: T | Column[T]) -> Comparison:
        return self._compare(">", other)

    def greater_or_equal(self, other: T | Column[T]) -> Comparison:
        return self._compare(">=", other)

    def is_in(self, values: Iterable[T]) -> Comparison:
        """Membership test against a non-empty collection of literal values."""
        vals = tuple(values)
        if not vals:
            raise QueryError(f"is_in() on {self.qualified_name} needs at least one value")
        for v in vals:
            if v is None:
                raise QueryError("is_in() does not accept None")
            self._check_value(v)
        return Comparison(left=self, op="IN", right=Literal(vals))

    def like(self, pattern: str) -> Comparison:
        if not isinstance(pattern, str):
            raise QueryError("like() expects a string pattern")
        return Comparison(left=self, op="LIKE", right=Literal(pattern))

    def is_null(self) -> Comparison:
        return Comparison(left=self, op="IS NULL")

    def is_not_null(self) -> Comparison:
        return Comparison(left=self, op="IS NOT NULL")

    # ---------- aggregates ----------

    def min(self) -> Aggregate:
        self._require_orderable("MIN")
        return Aggregate(kind="MIN", column=self)

    def max(self) -> Aggregate:
        self._require_orderable("MAX")
        return Aggregate(kind="MAX", column=self)

    def __repr__(self) -> str:
        return f"Column({self.qualified_name}: {self.witness.name})"


def column(
    name: str,
    typ: TypeWitness[T] | str | type,
    *properties: Property,
    registry: TypeRegistry | None = None,
) -> Column[T]:
    """
    Define an unbound column.

    Args:
        name: Column name.
        typ: Type witness, registered type name, or Python type.
        properties: PrimaryKey / AutoIncrement / Unique / NotNull / ForeignKey(target).
        registry: Type registry to resolve `typ` against (defaults to the built-in one).

    Returns:
        Column, bound to a table later by Datastore.define_table.

    Raises:
        SchemaError: on an unknown type, unknown/duplicate property, or
                     AUTOINCREMENT on a non-integral type.
    """
    if not isinstance(name, str) or not name:
        raise SchemaError("Column name must be a non-empty string")

    witness = (registry or DEFAULT_REGISTRY).resolve(typ)

    seen: list[Property] = []
    for p in properties:
        if not isinstance(p, (ColumnProperty, ForeignKey)):
            raise SchemaError(f"Unknown column property for {name}: {p!r}")
        if p in seen:
            raise SchemaError(f"Duplicate property {p.name} on column {name}")
        seen.append(p)

    if AutoIncrement in seen and not witness.integral:
        raise SchemaError(f"AUTOINCREMENT requires an integral type, {name} is {witness.name}")

    return Column(name=name, witness=witness, properties=tuple(seen))


# ---------- tables ----------

@dataclass(eq=False)
class Table:
    """
    Table metadata.

    Attributes:
        name: Table name.
        columns: Bound columns in declaration order.
        datastore: Owning datastore.
    """
    name: str
    columns: tuple[Column, ...]
    datastore: Datastore = field(repr=False)
    _by_name: dict[str, Column] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_name = {c.name: c for c in self.columns}

    @classmethod
    def bind(cls, name: str, columns: Iterable[Column], datastore: Datastore) -> Table:
        """Create a table owning copies of the given unbound columns."""
        table = cls(name=name, columns=(), datastore=datastore)
        table.columns = tuple(replace(c, table=table) for c in columns)
        table._by_name = {c.name: c for c in table.columns}
        return table

    @property
    def c(self) -> SimpleNamespace:
        """Attribute access to columns: table.c.name."""
        return SimpleNamespace(**self._by_name)

    def column_names(self) -> list[str]:
        """Return column names in declaration order."""
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Column | None:
        """Return Column by name, or None if not found."""
        return self._by_name.get(name)

    def __getitem__(self, name: str) -> Column:
        col = self._by_name.get(name)
        if col is None:
            raise KeyError(f"Column not found: {self.name}.{name}")
        return col

    def __contains__(self, col: object) -> bool:
        return isinstance(col, Column) and col.table is self

    @property
    def primary_key(self) -> Column | None:
        """
        Return the primary key column if present, else None.

        Note:
            Only ONE primary key column per table is supported.
        """
        return next((c for c in self.columns if c.primary_key), None)

    @property
    def auto_increment_column(self) -> Column | None:
        return next((c for c in self.columns if c.auto_increment), None)

    def __repr__(self) -> str:
        return f"Table({self.name}, columns={self.column_names()})"


def validate_table(datastore: Datastore, name: str, columns: tuple[Column, ...]) -> None:
    """
    Validate a table definition against the datastore it is being added to.

    Checks:
    - Table name is non-empty and not already registered
    - At least one column, no duplicate column names
    - Columns are unbound
    - Column types are registered in the datastore type registry
    - At most one PRIMARY KEY and one AUTOINCREMENT column
    - FOREIGN KEY targets are registered in this datastore and share the column type

    Raises:
        SchemaError: on invalid schema.
    """
    if not isinstance(name, str) or not name:
        raise SchemaError("Table name must be a non-empty string")
    if name in datastore.tables:
        raise SchemaError(f"Table already exists: {name}")
    if not columns:
        raise SchemaError(f"Table {name} needs at least one column")

    for c in columns:
        if not isinstance(c, Column):
            raise SchemaError(f"Not a column: {c!r}")

    col_names = [c.name for c in columns]
    if len(set(col_names)) != len(col_names):
        dupes = sorted({n for n in col_names if col_names.count(n) > 1})
        raise SchemaError(f"Duplicate column name in table {name}: {', '.join(dupes)}")

    for c in columns:
        if c.table is not None:
            raise SchemaError(f"Column {c.qualified_name} already belongs to another table")
        datastore.registry.resolve(c.witness)

    if len([c for c in columns if c.primary_key]) > 1:
        raise SchemaError(f"Only one PRIMARY KEY column is supported (table {name})")
    if len([c for c in columns if c.auto_increment]) > 1:
        raise SchemaError(f"Only one AUTOINCREMENT column is supported (table {name})")

    for c in columns:
        fk = c.foreign_key
        if fk is None:
            continue
        target = fk.target
        owner = target.table
        if owner is None or datastore.tables.get(owner.name) is not owner:
            raise SchemaError(
                f"FOREIGN KEY target for {name}.{c.name} is not registered: {target.qualified_name}"
            )
        if target.witness is not c.witness:
            raise SchemaError(
                f"FOREIGN KEY type mismatch: {name}.{c.name} is {c.witness.name}, "
                f"{target.qualified_name} is {target.witness.name}"
            )
