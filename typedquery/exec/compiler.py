"""
typedquery/exec/compiler.py

Translate AST nodes into backend statements.

Responsibilities:
- Render SELECT / INSERT / UPDATE / DELETE with qmark parameters
- Encode literal values through the witness of the column they are compared with
- Check that every column a SELECT mentions comes from a table in scope
- Render CREATE TABLE / DROP TABLE for the bootstrap helpers on Datastore

Design notes:
- Identifiers are double-quoted; SELECT columns are qualified by table name so
  joined tables never produce ambiguous references.
- Values never appear in SQL text, only in parameters.
"""

from __future__ import annotations

from typing import Any

from ..ast import (
    Aggregate,
    And,
    Comparison,
    Delete,
    Expression,
    Insert,
    Literal,
    Not,
    Or,
    Predicate,
    Select,
    Update,
)
from ..backend.base import BatchStatement, Statement
from ..errors import QueryError, SchemaError
from ..schema import Column, Table


def quote(identifier: str) -> str:
    """Double-quote an SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def render_expression(expr: Expression, qualified: bool = True) -> str:
    if isinstance(expr, Aggregate):
        return f"{expr.kind}({render_expression(expr.column, qualified)})"
    if isinstance(expr, Column):
        if qualified:
            return f"{quote(expr.table.name)}.{quote(expr.name)}"
        return quote(expr.name)
    raise QueryError(f"Cannot render expression: {expr!r}")


def render_predicate(pred: Predicate, params: list[Any], qualified: bool = True) -> str:
    """
    Render a predicate, appending its parameters to `params` in order.

    Args:
        pred: Predicate node.
        params: Output parameter list.
        qualified: Qualify column names with their table.

    Returns:
        SQL fragment.
    """
    if isinstance(pred, Comparison):
        left = render_expression(pred.left, qualified)
        op = pred.op
        if op in ("IS NULL", "IS NOT NULL"):
            return f"{left} {op}"
        if isinstance(pred.right, Expression):
            return f"{left} {op} {render_expression(pred.right, qualified)}"
        if not isinstance(pred.right, Literal):
            raise QueryError(f"Comparison {op} needs a right operand")
        witness = pred.left.witness
        if op == "IN":
            params.extend(witness.encode_value(v) for v in pred.right.value)
            return f"{left} IN ({', '.join('?' for _ in pred.right.value)})"
        if op == "LIKE":
            params.append(pred.right.value)
        else:
            params.append(witness.encode_value(pred.right.value))
        return f"{left} {op} ?"
    if isinstance(pred, And):
        return "(" + " AND ".join(render_predicate(p, params, qualified) for p in pred.parts) + ")"
    if isinstance(pred, Or):
        return "(" + " OR ".join(render_predicate(p, params, qualified) for p in pred.parts) + ")"
    if isinstance(pred, Not):
        return f"NOT ({render_predicate(pred.inner, params, qualified)})"
    raise QueryError(f"Unsupported predicate: {type(pred).__name__}")


# ---------- scope checks ----------

def _check_select_scope(stmt: Select) -> None:
    """
    Ensure every referenced table is a FROM/JOIN table of one datastore.

    Raises:
        QueryError: on out-of-scope columns, repeated tables, or mixed datastores.
    """
    in_scope = list(stmt.tables())
    if len(set(in_scope)) != len(in_scope):
        raise QueryError("A table may appear only once per SELECT (self joins are not supported)")
    datastore = in_scope[0].datastore
    for t in in_scope:
        if t.datastore is not datastore:
            raise QueryError(f"Table {t.name} belongs to another datastore")

    scope = set(in_scope)
    referenced: list[Column] = []
    for expr in stmt.projection:
        referenced.extend(expr.columns())
    for j in stmt.joins:
        referenced.extend(j.on.columns())
    if stmt.predicate is not None:
        referenced.extend(stmt.predicate.columns())
    for col in referenced:
        if col.table not in scope:
            raise QueryError(f"Column {col.qualified_name} is not in scope; add its table with from_() or inner_join()")


# ---------- DML ----------

def compile_select(stmt: Select) -> Statement:
    _check_select_scope(stmt)
    params: list[Any] = []
    cols = ", ".join(render_expression(e) for e in stmt.projection)
    sql = f"SELECT {cols} FROM {', '.join(quote(t.name) for t in stmt.sources)}"
    for j in stmt.joins:
        sql += f" INNER JOIN {quote(j.table.name)} ON {render_predicate(j.on, params)}"
    if stmt.predicate is not None:
        sql += f" WHERE {render_predicate(stmt.predicate, params)}"
    return Statement(sql=sql, params=tuple(params))


def _insert_sql(stmt: Insert) -> str:
    table = quote(stmt.table.name)
    if not stmt.columns:
        return f"INSERT INTO {table} DEFAULT VALUES"
    cols = ", ".join(quote(c.name) for c in stmt.columns)
    marks = ", ".join("?" for _ in stmt.columns)
    return f"INSERT INTO {table} ({cols}) VALUES ({marks})"


def _encode_row(columns: tuple[Column, ...], row: tuple[Any, ...]) -> tuple[Any, ...]:
    return tuple(c.witness.encode_value(v) for c, v in zip(columns, row))


def compile_insert(stmt: Insert) -> Statement:
    """Single-row INSERT."""
    if len(stmt.rows) != 1:
        raise QueryError("compile_insert() expects exactly one row; use compile_insert_batch()")
    return Statement(sql=_insert_sql(stmt), params=_encode_row(stmt.columns, stmt.rows[0]))


def compile_insert_batch(stmt: Insert) -> BatchStatement:
    """Batched INSERT: one SQL text, one parameter row per inserted row."""
    return BatchStatement(
        sql=_insert_sql(stmt),
        param_rows=tuple(_encode_row(stmt.columns, r) for r in stmt.rows),
    )


def compile_update(stmt: Update) -> Statement:
    params: list[Any] = []
    sets = []
    for cv in stmt.assignments:
        sets.append(f"{quote(cv.column.name)} = ?")
        params.append(cv.column.witness.encode_value(cv.value))
    sql = f"UPDATE {quote(stmt.table.name)} SET {', '.join(sets)}"
    if stmt.predicate is not None:
        sql += f" WHERE {render_predicate(stmt.predicate, params, qualified=False)}"
    return Statement(sql=sql, params=tuple(params))


def compile_delete(stmt: Delete) -> Statement:
    params: list[Any] = []
    sql = f"DELETE FROM {quote(stmt.table.name)}"
    if stmt.predicate is not None:
        sql += f" WHERE {render_predicate(stmt.predicate, params, qualified=False)}"
    return Statement(sql=sql, params=tuple(params))


# ---------- DDL ----------

def _column_ddl(col: Column) -> str:
    parts = [quote(col.name), col.witness.sql_type]
    if col.primary_key:
        parts.append("PRIMARY KEY")
        if col.auto_increment:
            parts.append("AUTOINCREMENT")
    elif col.auto_increment:
        # SQLite only auto-assigns values for an INTEGER PRIMARY KEY.
        raise SchemaError(f"AUTOINCREMENT column {col.qualified_name} must also be the PRIMARY KEY")
    if col.not_null:
        parts.append("NOT NULL")
    if col.unique:
        parts.append("UNIQUE")
    return " ".join(parts)


def compile_create_table(table: Table) -> Statement:
    """CREATE TABLE IF NOT EXISTS with column constraints and FOREIGN KEY clauses."""
    defs = [_column_ddl(c) for c in table.columns]
    for c in table.columns:
        fk = c.foreign_key
        if fk is not None:
            defs.append(
                f"FOREIGN KEY ({quote(c.name)}) REFERENCES {quote(fk.target.table.name)} ({quote(fk.target.name)})"
            )
    return Statement(sql=f"CREATE TABLE IF NOT EXISTS {quote(table.name)} ({', '.join(defs)})")


def compile_drop_table(table: Table) -> Statement:
    return Statement(sql=f"DROP TABLE IF EXISTS {quote(table.name)}")
