"""
typedquery/datastore.py

Public Datastore API for typedquery.

Responsibilities:
- Provide the schema declaration surface:
    - ds = Datastore(backend) / Datastore.open(path)
    - ds.define_table(name, column(...), ...) -> Table
    - ds.initialize() freezes the schema
- Provide the session surface:
    - with ds.session(transactional=False) as session: ...
    - ds.with_session(body, transactional=False) -> body(session)
- Track the active session per logical flow (thread / asyncio task)
- Bootstrap tables (create_tables / drop_tables)

A Datastore is an explicit value created once at startup and passed around by
reference; there is no module-level default instance.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Iterator, Mapping, TypeVar

from .backend.base import Backend, Statement
from .backend.sqlite import SQLiteBackend
from .errors import SchemaError, SessionError
from .exec.compiler import compile_create_table, compile_drop_table
from .schema import Column, Table, validate_table
from .session import Session
from .types import DEFAULT_REGISTRY, TypeRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(eq=False)
class Datastore:
    """
    Registry of tables bound to one backend.

    Attributes:
        backend: Backend capability used to open session connections.
        registry: Type registry columns are resolved against.
        tables: Read-only view of the registered tables by name, in definition order.

    backend and registry cannot be replaced once the datastore is initialized.
    """
    backend: Backend
    registry: TypeRegistry = field(default_factory=lambda: DEFAULT_REGISTRY)
    _tables: dict[str, Table] = field(default_factory=dict, init=False, repr=False)
    _initialized: bool = field(default=False, init=False)
    _closed: bool = field(default=False, init=False)
    _active: contextvars.ContextVar = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._active = contextvars.ContextVar(f"typedquery_session_{id(self)}", default=None)

    def __setattr__(self, name: str, value: object) -> None:
        if name in ("backend", "registry") and getattr(self, "_initialized", False):
            raise SchemaError(f"Cannot replace {name}: datastore is already initialized")
        super().__setattr__(name, value)

    @classmethod
    def open(cls, path: str | Path) -> "Datastore":
        """
        Create a datastore backed by a SQLite database file.

        Args:
            path: Database file path. Created on first connection if missing.

        Returns:
            Datastore instance (not yet initialized).
        """
        return cls(backend=SQLiteBackend(str(path)))

    # ---------- schema ----------

    @property
    def tables(self) -> Mapping[str, Table]:
        return MappingProxyType(self._tables)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def define_table(self, name: str, *columns: Column) -> Table:
        """
        Register a table.

        Args:
            name: Table name.
            columns: Unbound columns from column(...), in declaration order.

        Returns:
            Table owning bound copies of the columns.

        Raises:
            SchemaError: on invalid schema, or if the datastore is already initialized.
        """
        if self._initialized:
            raise SchemaError(f"Cannot define table {name}: datastore is already initialized")
        validate_table(self, name, columns)
        table = Table.bind(name, columns, self)
        self._tables[name] = table
        logger.debug("table defined: %s(%s)", name, ", ".join(table.column_names()))
        return table

    def require_table(self, name: str) -> Table:
        """
        Fetch a table by name or raise SchemaError.
        """
        t = self.tables.get(name)
        if t is None:
            raise SchemaError(f"Table not found: {name}")
        return t

    def initialize(self) -> "Datastore":
        """Freeze the schema. Sessions can be opened from now on."""
        if self._closed:
            raise SessionError("Datastore is closed")
        self._initialized = True
        return self

    def close(self) -> None:
        """
        Tear the datastore down. No new sessions can be opened.

        Raises:
            SessionError: if a session is still active in this flow.
        """
        if self._active.get() is not None:
            raise SessionError("Cannot close the datastore inside an active session")
        self._closed = True

    # ---------- sessions ----------

    @contextmanager
    def session(self, transactional: bool = False) -> Iterator[Session]:
        """
        Enter a session scope.

        The outermost scope creates the session and releases its connection on
        exit; nested scopes in the same flow reuse it unchanged (their
        `transactional` argument is ignored).

        Raises:
            SessionError: if the datastore is not initialized or is closed.
        """
        current: Session | None = self._active.get()
        if current is not None:
            with current.nested():
                yield current
            return

        if self._closed:
            raise SessionError("Datastore is closed")
        if not self._initialized:
            raise SessionError("Datastore is not initialized; call initialize() first")

        sess = Session(self, transactional=transactional)
        token = self._active.set(sess)
        try:
            with sess:
                yield sess
        finally:
            self._active.reset(token)

    def with_session(self, body: Callable[[Session], T], transactional: bool = False) -> T:
        """Run body(session) inside a session scope and return its result."""
        with self.session(transactional=transactional) as sess:
            return body(sess)

    def current_session(self) -> Session:
        """
        Return the session active in this flow.

        Raises:
            SessionError: if there is none.
        """
        sess = self._active.get()
        if sess is None or not sess.is_active:
            raise SessionError("No active session; wrap the call in datastore.session()")
        return sess

    # ---------- bootstrap ----------

    def create_tables(self) -> None:
        """Create every registered table (IF NOT EXISTS), in definition order."""
        self._run_ddl([compile_create_table(t) for t in self.tables.values()])

    def drop_tables(self) -> None:
        """Drop every registered table (IF EXISTS), in reverse definition order."""
        self._run_ddl([compile_drop_table(t) for t in reversed(list(self.tables.values()))])

    def _run_ddl(self, statements: list[Statement]) -> None:
        with self.session(transactional=True) as sess:
            conn = sess.connection()
            for stmt in statements:
                logger.debug("ddl: %s", stmt.sql)
                conn.execute_update(stmt)
