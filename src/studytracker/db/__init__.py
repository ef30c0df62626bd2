"""Database module for the per-user document store."""

from .base import (
    MAX_BATCH_OPERATIONS,
    BatchOperation,
    DocumentSnapshot,
    DocumentStore,
    WriteBatch,
)
from .models import StoredDocument
from .sqlite import Database, SQLiteWriteBatch, get_db, reset_db

__all__ = [
    "MAX_BATCH_OPERATIONS",
    "BatchOperation",
    "DocumentSnapshot",
    "DocumentStore",
    "WriteBatch",
    "StoredDocument",
    "Database",
    "SQLiteWriteBatch",
    "get_db",
    "reset_db",
]
