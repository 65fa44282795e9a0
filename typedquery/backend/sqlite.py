"""SQLite backend implementation.

Wraps the standard ``sqlite3`` module behind the BackendConnection protocol:
    - Connections run in autocommit mode (isolation_level=None); transactions are
      explicit BEGIN / COMMIT / ROLLBACK issued by the session manager
    - FOREIGN KEY enforcement and busy timeout applied on connect
    - sqlite3.IntegrityError surfaces as ConstraintViolation
    - Environment driven configuration via BackendConfig.from_env
"""
from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass, replace
from typing import Callable, Optional, TypeVar

from ..errors import ConstraintViolation
from .base import BatchStatement, Statement, UpdateCount

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "typedquery.db"
DEFAULT_TIMEOUT = 30.0
MAX_TIMEOUT = 600.0

R = TypeVar("R")


@dataclass
class BackendConfig:
    path: str = DEFAULT_DB_PATH
    timeout: float = DEFAULT_TIMEOUT
    foreign_keys: bool = True

    @classmethod
    def from_env(cls) -> "BackendConfig":
        path = os.environ.get("TYPEDQUERY_DB_PATH", DEFAULT_DB_PATH)
        raw_timeout = os.environ.get("TYPEDQUERY_TIMEOUT")
        timeout = DEFAULT_TIMEOUT
        if raw_timeout is not None:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warning("invalid TYPEDQUERY_TIMEOUT=%r, using %s", raw_timeout, DEFAULT_TIMEOUT)
        # Clamp
        if timeout < 0 or timeout > MAX_TIMEOUT:
            clamped = min(MAX_TIMEOUT, max(0.0, timeout))
            logger.warning("TYPEDQUERY_TIMEOUT=%s out of range, clamped to %s", timeout, clamped)
            timeout = clamped
        raw_fk = os.environ.get("TYPEDQUERY_FOREIGN_KEYS", "1")
        if raw_fk not in ("0", "1"):
            logger.warning("invalid TYPEDQUERY_FOREIGN_KEYS=%r, using 1", raw_fk)
            raw_fk = "1"
        return cls(path=path, timeout=timeout, foreign_keys=raw_fk == "1")


def _integrity(fn: Callable[[], R]) -> R:
    try:
        return fn()
    except sqlite3.IntegrityError as e:
        raise ConstraintViolation(str(e)) from e


class SQLiteConnection:
    """BackendConnection over one sqlite3.Connection."""

    def __init__(self, inner: sqlite3.Connection):
        self._inner = inner

    @property
    def raw(self) -> sqlite3.Connection:
        return self._inner

    def execute_query(self, statement: Statement) -> sqlite3.Cursor:
        return _integrity(lambda: self._inner.execute(statement.sql, statement.params))

    def execute_update(self, statement: Statement) -> UpdateCount:
        cur = _integrity(lambda: self._inner.execute(statement.sql, statement.params))
        try:
            return UpdateCount(rows_affected=cur.rowcount, generated_key=cur.lastrowid)
        finally:
            cur.close()

    def execute_batch(self, statement: BatchStatement) -> int:
        cur = _integrity(lambda: self._inner.executemany(statement.sql, statement.param_rows))
        try:
            return cur.rowcount
        finally:
            cur.close()

    def begin(self) -> None:
        self._inner.execute("BEGIN")

    def commit(self) -> None:
        if self._inner.in_transaction:
            _integrity(lambda: self._inner.execute("COMMIT"))

    def rollback(self) -> None:
        if self._inner.in_transaction:
            self._inner.execute("ROLLBACK")

    def close(self) -> None:
        self._inner.close()


class SQLiteBackend:
    """SQLite backend.

    Responsibilities:
      - Open one configured sqlite3 connection per connect() call
      - Apply pragmas (foreign keys) and busy timeout
      - Leave pooling to the caller; sessions own exactly one connection each
    """
    def __init__(self, path: Optional[str | os.PathLike] = None, config: Optional[BackendConfig] = None):
        if config is None:
            config = BackendConfig(path=str(path)) if path is not None else BackendConfig.from_env()
        elif path is not None:
            config = replace(config, path=str(path))
        self.config = config
        if os.path.isdir(self.config.path):  # directory misuse
            raise ValueError(f"Path points to a directory, expected file: {self.config.path}")
        self.path = self.config.path

    @classmethod
    def from_env(cls) -> "SQLiteBackend":
        return cls(config=BackendConfig.from_env())

    def connect(self) -> SQLiteConnection:
        conn = sqlite3.connect(self.path, timeout=self.config.timeout, isolation_level=None)
        try:
            if self.config.foreign_keys:
                conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error:
            conn.close()
            raise
        logger.debug("sqlite connection opened path=%s", self.path)
        return SQLiteConnection(conn)

    def __repr__(self) -> str:
        return f"SQLiteBackend({self.path!r})"

