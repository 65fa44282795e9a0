"""
typedquery/exec/executor.py

Statement execution engine for typedquery.

Responsibilities:
- Execute AST statements built by typedquery/builder.py:
    - SELECT -> QueryResult cursor bound to the session
    - INSERT -> InsertOutcome (generated key for single rows, sentinel keys for batches)
    - UPDATE / DELETE -> affected row count
- Compile each statement (typedquery/exec/compiler.py) and hand it to the
  session connection, which is opened on the first statement

Core design:
- Statements run synchronously in the order result() is called; nothing is
  reordered or batched across statements.
- Backend failures (including ConstraintViolation) propagate unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..ast import Delete, Insert, Query, Select, Update
from ..errors import QueryError, SessionError
from ..result import BATCH_KEY_SENTINEL, InsertOutcome, QueryResult
from ..session import Session
from .compiler import compile_delete, compile_insert, compile_insert_batch, compile_select, compile_update

logger = logging.getLogger(__name__)


@dataclass
class Executor:
    """
    Executes AST statements within one session.

    Args:
        session: Active session providing the connection.
    """
    session: Session

    # --------------------------
    # public entry point
    # --------------------------

    def execute(self, stmt: Query):
        """
        Execute a single statement.

        Args:
            stmt: AST statement.

        Returns:
            QueryResult for SELECT, InsertOutcome for INSERT, int for UPDATE/DELETE.

        Raises:
            SessionError: if the session is not active.
            QueryError: if the statement cannot be compiled.
        """
        if not self.session.is_active:
            raise SessionError("Cannot execute a statement: session is closed")
        if isinstance(stmt, Select):
            return self._select(stmt)
        if isinstance(stmt, Insert):
            return self._insert(stmt)
        if isinstance(stmt, Update):
            return self._update(stmt)
        if isinstance(stmt, Delete):
            return self._delete(stmt)

        raise QueryError(f"Unsupported statement: {type(stmt).__name__}")

    # --------------------------
    # DML
    # --------------------------

    def _select(self, stmt: Select) -> QueryResult:
        compiled = compile_select(stmt)
        logger.debug("select: %s %r", compiled.sql, compiled.params)
        cursor = self.session.connection().execute_query(compiled)
        return QueryResult(self.session, stmt.projection, cursor, compiled)

    def _insert(self, stmt: Insert) -> InsertOutcome:
        """
        INSERT execution.

        - Single row: reports the backend generated key when the table has an
          AUTOINCREMENT column
        - Batch: one batched backend call; per-row keys cannot be told apart,
          so every row reports BATCH_KEY_SENTINEL
        """
        has_auto = stmt.table.auto_increment_column is not None

        if stmt.batch:
            batch = compile_insert_batch(stmt)
            logger.debug("insert batch: %s (%d rows)", batch.sql, len(batch.param_rows))
            affected = self.session.connection().execute_batch(batch)
            keys = (BATCH_KEY_SENTINEL,) * len(stmt.rows) if has_auto else ()
            return InsertOutcome(rows_affected=affected, generated_keys=keys)

        compiled = compile_insert(stmt)
        logger.debug("insert: %s %r", compiled.sql, compiled.params)
        res = self.session.connection().execute_update(compiled)
        keys = (res.generated_key,) if has_auto and res.generated_key is not None else ()
        return InsertOutcome(rows_affected=res.rows_affected, generated_keys=keys)

    def _update(self, stmt: Update) -> int:
        compiled = compile_update(stmt)
        logger.debug("update: %s %r", compiled.sql, compiled.params)
        return self.session.connection().execute_update(compiled).rows_affected

    def _delete(self, stmt: Delete) -> int:
        compiled = compile_delete(stmt)
        logger.debug("delete: %s %r", compiled.sql, compiled.params)
        return self.session.connection().execute_update(compiled).rows_affected


def execute(stmt: Query, session: Session | None = None):
    """
    Execute `stmt` in `session`, or in the active session of its datastore.

    Raises:
        SessionError: if no session is active.
    """
    if session is None:
        session = stmt.datastore.current_session()
    elif session.datastore is not stmt.datastore:
        raise SessionError("Session belongs to another datastore")
    return Executor(session).execute(stmt)
