"""SQLite-backed document store.

Handles database connection, session management, document reads and
batched writes.
"""

import json
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import DocumentStoreError
from .base import MAX_BATCH_OPERATIONS, BatchOperation, DocumentSnapshot
from .models import Base, StoredDocument

# Key used to tag native timestamps inside stored JSON
_DATE_TAG = "$date"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {_DATE_TAG: value.astimezone(timezone.utc).isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_object_hook(obj: dict) -> Any:
    if len(obj) == 1 and _DATE_TAG in obj:
        return datetime.fromisoformat(obj[_DATE_TAG])
    return obj


def dump_data(data: dict[str, Any]) -> str:
    """Serialize record data, keeping datetimes as native timestamps."""
    return json.dumps(data, default=_json_default, ensure_ascii=False)


def load_data(text: str) -> dict[str, Any]:
    """Deserialize record data written by dump_data."""
    return json.loads(text, object_hook=_json_object_hook)


class SQLiteWriteBatch:
    """Batch of writes applied in a single transaction."""

    def __init__(self, db: "Database", max_operations: int = MAX_BATCH_OPERATIONS):
        self._db = db
        self.max_operations = max_operations
        self.operations: list[BatchOperation] = []
        self.committed = False

    def __len__(self) -> int:
        return len(self.operations)

    def _add(self, operation: BatchOperation) -> None:
        if self.committed:
            raise DocumentStoreError("Batch has already been committed")
        if len(self.operations) >= self.max_operations:
            raise DocumentStoreError(
                f"Batch limit exceeded: at most {self.max_operations} operations per commit"
            )
        self.operations.append(operation)

    def set(self, owner_id: str, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Queue a create-or-replace of one document."""
        self._add(BatchOperation("set", owner_id, collection, doc_id, data))

    def delete(self, owner_id: str, collection: str, doc_id: str) -> None:
        """Queue deletion of one document."""
        self._add(BatchOperation("delete", owner_id, collection, doc_id))

    def commit(self) -> None:
        """Apply all queued operations atomically."""
        if self.committed:
            raise DocumentStoreError("Batch has already been committed")

        try:
            with self._db.get_session() as session:
                for op in self.operations:
                    if op.kind == "set":
                        self._db._upsert(session, op.owner_id, op.collection, op.doc_id, op.data or {})
                    else:
                        self._db._delete(session, op.owner_id, op.collection, op.doc_id)
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise DocumentStoreError(f"Batch commit failed: {e}") from e

        self.committed = True


class Database:
    """Database connection and document operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     STUDYTRACKER_DB_PATH env var or default location.
        """
        if db_path is None:
            db_path = os.environ.get(
                "STUDYTRACKER_DB_PATH",
                str(Path.home() / ".studytracker" / "studytracker.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # In-memory databases share one connection across sessions
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Document Operations
    # ========================================================================

    def list_documents(
        self, owner_id: str, collection: str, limit: Optional[int] = None
    ) -> list[DocumentSnapshot]:
        """List a user's documents in a collection, oldest first."""
        stmt = (
            select(StoredDocument)
            .where(StoredDocument.owner_id == owner_id)
            .where(StoredDocument.collection == collection)
            .order_by(StoredDocument.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.get_session() as session:
                rows = session.execute(stmt).scalars().all()
                return [DocumentSnapshot(id=row.doc_id, data=load_data(row.data)) for row in rows]
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise DocumentStoreError(f"Failed to read collection '{collection}': {e}") from e

    def get_document(
        self, owner_id: str, collection: str, doc_id: str
    ) -> Optional[DocumentSnapshot]:
        """Get a single document, or None if it does not exist."""
        try:
            with self.get_session() as session:
                row = self._find(session, owner_id, collection, doc_id)
                if row is None:
                    return None
                return DocumentSnapshot(id=row.doc_id, data=load_data(row.data))
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise DocumentStoreError(f"Failed to read document '{collection}/{doc_id}': {e}") from e

    def set_document(
        self, owner_id: str, collection: str, doc_id: str, data: dict[str, Any]
    ) -> None:
        """Create or replace a single document."""
        try:
            with self.get_session() as session:
                self._upsert(session, owner_id, collection, doc_id, data)
        except (SQLAlchemyError, TypeError, ValueError) as e:
            raise DocumentStoreError(f"Failed to write document '{collection}/{doc_id}': {e}") from e

    def delete_document(self, owner_id: str, collection: str, doc_id: str) -> None:
        """Delete a single document. Missing documents are ignored."""
        try:
            with self.get_session() as session:
                self._delete(session, owner_id, collection, doc_id)
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Failed to delete document '{collection}/{doc_id}': {e}") from e

    def batch(self) -> SQLiteWriteBatch:
        """Start a new write batch."""
        return SQLiteWriteBatch(self)

    # ========================================================================
    # Session Helpers
    # ========================================================================

    def _find(
        self, session: Session, owner_id: str, collection: str, doc_id: str
    ) -> Optional[StoredDocument]:
        stmt = select(StoredDocument).where(
            StoredDocument.owner_id == owner_id,
            StoredDocument.collection == collection,
            StoredDocument.doc_id == doc_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    def _upsert(
        self, session: Session, owner_id: str, collection: str, doc_id: str, data: dict[str, Any]
    ) -> None:
        payload = dump_data(data)
        row = self._find(session, owner_id, collection, doc_id)
        if row is None:
            session.add(
                StoredDocument(
                    owner_id=owner_id,
                    collection=collection,
                    doc_id=doc_id,
                    data=payload,
                )
            )
        else:
            row.data = payload
        session.flush()

    def _delete(self, session: Session, owner_id: str, collection: str, doc_id: str) -> None:
        row = self._find(session, owner_id, collection, doc_id)
        if row is not None:
            session.delete(row)
            session.flush()


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
