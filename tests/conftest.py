from types import SimpleNamespace

import pytest

from typedquery import (
    INTEGER,
    REAL,
    TEXT,
    AutoIncrement,
    Datastore,
    ForeignKey,
    PrimaryKey,
    SQLiteBackend,
    column,
)


class CountingConnection:
    """Forwards to a real connection and records statements and close() calls."""

    def __init__(self, inner, backend):
        self._inner = inner
        self._backend = backend

    def execute_query(self, statement):
        self._backend.statements.append(statement.sql)
        return self._inner.execute_query(statement)

    def execute_update(self, statement):
        self._backend.statements.append(statement.sql)
        return self._inner.execute_update(statement)

    def execute_batch(self, statement):
        self._backend.statements.append(statement.sql)
        return self._inner.execute_batch(statement)

    def begin(self):
        self._backend.events.append("begin")
        self._inner.begin()

    def commit(self):
        self._backend.events.append("commit")
        self._inner.commit()

    def rollback(self):
        self._backend.events.append("rollback")
        self._inner.rollback()

    def close(self):
        self._backend.closed += 1
        self._inner.close()


class CountingBackend:
    def __init__(self, path):
        self._inner = SQLiteBackend(str(path))
        self.opened = 0
        self.closed = 0
        self.events = []
        self.statements = []

    def connect(self):
        self.opened += 1
        return CountingConnection(self._inner.connect(), self)

    def reset(self):
        self.opened = self.closed = 0
        self.events.clear()
        self.statements.clear()


def define_coffee_schema(ds):
    suppliers = ds.define_table(
        "suppliers",
        column("id", INTEGER, PrimaryKey),
        column("name", TEXT),
        column("street", TEXT),
        column("city", TEXT),
        column("state", TEXT),
        column("zip", TEXT),
    )
    coffees = ds.define_table(
        "coffees",
        column("name", TEXT, PrimaryKey),
        column("sup_id", INTEGER, ForeignKey(suppliers.c.id)),
        column("price", REAL),
        column("sales", INTEGER),
        column("total", INTEGER),
    )
    tasks = ds.define_table(
        "tasks",
        column("id", INTEGER, PrimaryKey, AutoIncrement),
        column("name", TEXT),
    )
    return suppliers, coffees, tasks


@pytest.fixture()
def backend(tmp_path):
    return CountingBackend(tmp_path / "coffee.db")


@pytest.fixture()
def db(backend):
    ds = Datastore(backend=backend)
    suppliers, coffees, tasks = define_coffee_schema(ds)
    ds.initialize()
    ds.create_tables()
    backend.reset()
    return SimpleNamespace(ds=ds, backend=backend, suppliers=suppliers, coffees=coffees, tasks=tasks)
