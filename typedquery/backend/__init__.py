"""Backend capability interface and the bundled SQLite implementation."""

from .base import Backend, BackendConnection, BatchStatement, RowCursor, Statement, UpdateCount
from .sqlite import BackendConfig, SQLiteBackend, SQLiteConnection

__all__ = [
    "Backend",
    "BackendConfig",
    "BackendConnection",
    "BatchStatement",
    "RowCursor",
    "SQLiteBackend",
    "SQLiteConnection",
    "Statement",
    "UpdateCount",
]
