"""
typedquery/errors.py

Centralized exception types for typedquery.

This module defines:
- A common base exception for all engine errors
- Specialized error types used across schema/session/builder/executor/result layers

No error here is retried by the engine. Retry policy, if any, belongs to the caller.
"""

from __future__ import annotations


class TypedQueryError(Exception):
    """
    Base class for all typedquery errors.

    Catching this exception allows callers to handle all engine errors
    without accidentally swallowing unrelated system exceptions.
    """


class SchemaError(TypedQueryError):
    """
    Raised when a table or column definition is invalid.

    Examples:
      - Duplicate column name within a table
      - FOREIGN KEY target not registered in the datastore
      - AUTO INCREMENT on a non-integral type
      - Defining a table after the datastore was initialized

    Nothing is registered when this is raised.
    """


class SessionError(TypedQueryError):
    """
    Raised when a statement or cursor is used outside a live session.

    Examples:
      - Calling result() with no active session
      - Reading a QueryResult after its owning session closed
      - Opening a session on a datastore that is not initialized
    """


class QueryError(TypedQueryError):
    """
    Raised when a query is built in a way the engine cannot execute.

    Examples:
      - Batch rows that do not share one column set
      - Value of the wrong type for a column
      - Reading a column that is not part of the projection
    """


class ConstraintViolation(TypedQueryError):
    """
    Raised by a backend when a data integrity constraint is violated.

    Examples:
      - PRIMARY KEY / UNIQUE duplicate
      - FOREIGN KEY target missing
      - NOT NULL violation
    """


class DecodeError(TypedQueryError):
    """
    Raised when backend data cannot be interpreted by a column's type witness.

    This signals a disagreement between the engine and the backend and is not
    recoverable by the caller.
    """
