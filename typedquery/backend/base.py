"""Backend capability interface.

The engine never talks to a driver directly. It compiles queries into
``Statement`` / ``BatchStatement`` values and hands them to a
``BackendConnection`` obtained from a ``Backend``. Anything that satisfies these
protocols (SQLite, Postgres, a test double) can be plugged in.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence


@dataclass(frozen=True)
class Statement:
    """SQL text with qmark-style parameters."""
    sql: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True)
class BatchStatement:
    """One SQL text run once per parameter row."""
    sql: str
    param_rows: tuple[tuple[Any, ...], ...]


@dataclass(frozen=True)
class UpdateCount:
    rows_affected: int
    generated_key: Optional[int] = None


class RowCursor(Protocol):  # pragma: no cover - structural typing helper
    def fetchone(self) -> Optional[Sequence[Any]]: ...
    def close(self) -> None: ...


class BackendConnection(Protocol):  # pragma: no cover - structural typing helper
    def execute_query(self, statement: Statement) -> RowCursor: ...
    def execute_update(self, statement: Statement) -> UpdateCount: ...
    def execute_batch(self, statement: BatchStatement) -> int: ...
    def begin(self) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
    def close(self) -> None: ...


class Backend(Protocol):
    def connect(self) -> BackendConnection:
        """Open a new physical connection.

        Implementations raise ConstraintViolation for integrity failures and
        let every other driver error propagate unchanged.
        """
        ...
