"""
typedquery

Typed query building and execution over a relational backend.

    ds = Datastore.open("coffee.db")
    suppliers = ds.define_table(
        "suppliers",
        column("id", INTEGER, PrimaryKey),
        column("name", TEXT),
    )
    ds.initialize()

    with ds.session():
        insert(suppliers.c.id(101), suppliers.c.name("Acme, Inc.")).result()
        row = select(suppliers.c.name).from_(suppliers).where(suppliers.c.id.equals(101)).result().first()
"""

from .ast import Aggregate, ColumnValue, Delete, Insert, Predicate, Select, Update, and_, or_
from .backend import BackendConfig, SQLiteBackend
from .builder import delete, insert, insert_batch, insert_into, select, update
from .datastore import Datastore
from .errors import ConstraintViolation, DecodeError, QueryError, SchemaError, SessionError, TypedQueryError
from .result import BATCH_KEY_SENTINEL, InsertOutcome, QueryResult, Row
from .schema import AutoIncrement, Column, ForeignKey, NotNull, PrimaryKey, Table, Unique, column
from .session import Session, SessionState
from .types import (
    BLOB,
    BOOLEAN,
    DATE,
    DATETIME,
    DECIMAL,
    INTEGER,
    REAL,
    TEXT,
    UUID,
    TypeRegistry,
    TypeWitness,
    default_registry,
)

__version__ = "0.1.0"

__all__ = [
    "Aggregate",
    "AutoIncrement",
    "BATCH_KEY_SENTINEL",
    "BLOB",
    "BOOLEAN",
    "BackendConfig",
    "Column",
    "ColumnValue",
    "ConstraintViolation",
    "DATE",
    "DATETIME",
    "DECIMAL",
    "Datastore",
    "DecodeError",
    "Delete",
    "ForeignKey",
    "INTEGER",
    "Insert",
    "InsertOutcome",
    "NotNull",
    "Predicate",
    "PrimaryKey",
    "QueryError",
    "QueryResult",
    "REAL",
    "Row",
    "SQLiteBackend",
    "SchemaError",
    "Select",
    "Session",
    "SessionError",
    "SessionState",
    "TEXT",
    "Table",
    "TypeRegistry",
    "TypeWitness",
    "TypedQueryError",
    "UUID",
    "Unique",
    "Update",
    "and_",
    "column",
    "default_registry",
    "delete",
    "insert",
    "insert_batch",
    "insert_into",
    "or_",
    "select",
    "update",
]
