"""
typedquery/session.py

Session lifecycle: lazy connection acquisition, reentrant nesting and transactions.

A Session is created by the outermost `Datastore.session()` scope and reused
verbatim by every nested scope in the same logical flow. Its connection moves
through an explicit state machine:

    UNOPENED --(first statement)--> OPEN --(outermost scope exit)--> CLOSED

A scope that never runs a statement never opens a connection.

Transactions:
- Only the outermost scope decides whether the session is transactional.
- The transaction begins right after the connection opens.
- Normal exit commits; an exception rolls back and then propagates unchanged.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Iterator

from .errors import SessionError

if TYPE_CHECKING:
    from .backend.base import BackendConnection
    from .datastore import Datastore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class Session:
    """
    One logical unit of connection usage.

    Attributes:
        datastore: Datastore whose backend provides the connection.
        transactional: Whether the outermost scope asked for a transaction.
        depth: Current nesting depth (1 for the outermost scope).
        state: Connection state.
    """

    def __init__(self, datastore: Datastore, transactional: bool = False):
        self.datastore = datastore
        self.transactional = transactional
        self.depth = 0
        self.state = SessionState.UNOPENED
        self._conn: BackendConnection | None = None

    @property
    def is_active(self) -> bool:
        return self.depth > 0 and self.state is not SessionState.CLOSED

    def require_active(self) -> None:
        """
        Raises:
            SessionError: if the session scope has exited.
        """
        if not self.is_active:
            raise SessionError("Session is closed")

    def connection(self) -> BackendConnection:
        """
        Return the session connection, opening it on first use.

        Raises:
            SessionError: if the session is no longer active.
        """
        self.require_active()
        if self._conn is None:
            conn = self.datastore.backend.connect()
            logger.debug("session connection opened (transactional=%s)", self.transactional)
            if self.transactional:
                try:
                    conn.begin()
                except BaseException:
                    conn.close()
                    raise
                logger.debug("transaction started")
            self._conn = conn
            self.state = SessionState.OPEN
        return self._conn

    @contextmanager
    def nested(self) -> Iterator[Session]:
        """Reenter this session from a nested scope."""
        self.require_active()
        self.depth += 1
        try:
            yield self
        finally:
            self.depth -= 1

    def __enter__(self) -> Session:
        if self.state is SessionState.CLOSED or self.depth:
            raise SessionError("Session can only be entered once")
        self.depth = 1
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._release(failed=exc_type is not None)
        return False

    def _release(self, failed: bool) -> None:
        conn = self._conn
        try:
            if conn is not None and self.transactional:
                if failed:
                    logger.warning("rolling back transaction after failure")
                    try:
                        conn.rollback()
                    except Exception:
                        # The body's exception is the one that propagates.
                        logger.exception("rollback failed")
                else:
                    conn.commit()
                    logger.debug("transaction committed")
        finally:
            self._conn = None
            self.depth = 0
            self.state = SessionState.CLOSED
            if conn is not None:
                conn.close()
                logger.debug("session connection closed")

    def __repr__(self) -> str:
        return f"Session(state={self.state.value}, depth={self.depth}, transactional={self.transactional})"
