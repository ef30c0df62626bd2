"""Backup import.

Writes a backup document back into the document store in bounded
batches. Restore is best-effort per collection: a failing collection is
reported in the result and the remaining ones are still attempted.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from tqdm import tqdm

from ..auth import AuthContext, UserSession
from ..db.base import MAX_BATCH_OPERATIONS, DocumentStore
from ..db.sqlite import get_db
from ..errors import AuthenticationError, DocumentStoreError
from .codec import decode
from .schemas import (
    BACKUP_COLLECTIONS,
    MUTABLE_COLLECTIONS,
    SETTINGS_COLLECTION,
    BackupDocument,
    BackupRecord,
    parse_backup,
)

logger = logging.getLogger(__name__)

# Stays under the store's hard ceiling of 500 operations per batch
BATCH_LIMIT = 400


@dataclass
class ImportResult:
    """Result of an import operation."""

    total_documents: int = 0
    imported_documents: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def failed_documents(self) -> int:
        return self.total_documents - self.imported_documents

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "totalDocuments": self.total_documents,
            "importedDocuments": self.imported_documents,
            "errors": list(self.errors),
        }


class BatchedImporter:
    """Restores backup documents into the signed-in user's collections."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        auth: Optional[AuthContext] = None,
        batch_limit: int = BATCH_LIMIT,
        show_progress: bool = False,
    ):
        """Initialize importer.

        Args:
            store: Document store (uses global database if not provided)
            auth: Source of the signed-in user (uses config if not provided)
            batch_limit: Writes per batch commit
            show_progress: Show a progress bar per collection
        """
        if not 1 <= batch_limit <= MAX_BATCH_OPERATIONS:
            raise ValueError(
                f"batch_limit must be between 1 and {MAX_BATCH_OPERATIONS}, got {batch_limit}"
            )

        self.store = store or get_db()
        self.auth = auth or UserSession.from_config()
        self.batch_limit = batch_limit
        self.show_progress = show_progress

    def _require_user(self) -> str:
        user_id = self.auth.current_user_id
        if not user_id:
            raise AuthenticationError()
        return user_id

    def import_user_data(
        self,
        backup: Union[str, bytes, dict],
        overwrite: bool = False,
    ) -> ImportResult:
        """Validate backup JSON and write it into the store.

        Args:
            backup: Backup JSON text (or an already-decoded dictionary)
            overwrite: Delete the user's existing records first

        Returns:
            ImportResult with counts and per-collection errors

        Raises:
            AuthenticationError: If no user is signed in.
            ValidationError: If the backup is malformed. Nothing is written.
        """
        user_id = self._require_user()
        document = parse_backup(backup)
        return self._import(user_id, document, overwrite)

    def import_document(self, document: BackupDocument, overwrite: bool = False) -> ImportResult:
        """Write an already-parsed backup document into the store."""
        user_id = self._require_user()
        return self._import(user_id, document, overwrite)

    def cleanup_user_data(self, user_id: str) -> int:
        """Delete the user's records in every mutable collection.

        Settings are left alone; they are always upserted on import.
        Failures are logged and skipped.

        Returns:
            Number of records deleted
        """
        deleted = 0

        for name in MUTABLE_COLLECTIONS:
            try:
                snapshots = self.store.list_documents(user_id, name)
            except DocumentStoreError as e:
                logger.warning("Could not read %s for cleanup: %s", name, e)
                continue

            batch = self.store.batch()
            for snapshot in snapshots:
                batch.delete(user_id, name, snapshot.id)
                if len(batch) >= self.batch_limit:
                    deleted += self._commit_deletes(batch, name)
                    batch = self.store.batch()

            if len(batch) > 0:
                deleted += self._commit_deletes(batch, name)

        logger.info("Removed %d existing records for %s", deleted, user_id)
        return deleted

    def _commit_deletes(self, batch, name: str) -> int:
        try:
            batch.commit()
            return len(batch)
        except DocumentStoreError as e:
            logger.warning("Failed to delete %d records from %s: %s", len(batch), name, e)
            return 0

    def _import(self, user_id: str, document: BackupDocument, overwrite: bool) -> ImportResult:
        if document.metadata.user_id != user_id:
            logger.warning(
                "Restoring backup of user %s into account %s",
                document.metadata.user_id,
                user_id,
            )

        result = ImportResult()

        if overwrite:
            self.cleanup_user_data(user_id)

        for name in document.collections:
            if name not in BACKUP_COLLECTIONS:
                logger.warning("Skipping unknown collection %s", name)
                result.errors.append(f"Skipped unknown collection '{name}'")

        for name in BACKUP_COLLECTIONS:
            records = document.collections.get(name)
            if records is None:
                continue

            if name == SETTINGS_COLLECTION:
                self._import_settings(user_id, records, result)
            else:
                self._import_collection(user_id, name, records, result)

        logger.info(
            "Imported %d of %d documents for %s (%d errors)",
            result.imported_documents,
            result.total_documents,
            user_id,
            len(result.errors),
        )
        return result

    def _import_settings(
        self, user_id: str, records: list[BackupRecord], result: ImportResult
    ) -> None:
        result.total_documents += len(records)
        if not records:
            return

        try:
            # Only the first record, always keyed by the importing user
            self.store.set_document(
                user_id, SETTINGS_COLLECTION, user_id, decode(records[0].data)
            )
            result.imported_documents += 1
        except DocumentStoreError as e:
            logger.error("Settings import failed: %s", e)
            result.errors.append(f"Failed to import settings: {e}")

    def _import_collection(
        self,
        user_id: str,
        name: str,
        records: list[BackupRecord],
        result: ImportResult,
    ) -> None:
        result.total_documents += len(records)

        batch = self.store.batch()
        try:
            for record in tqdm(records, desc=f"Importing {name}", disable=not self.show_progress):
                batch.set(user_id, name, record.id, decode(record.data))

                if len(batch) >= self.batch_limit:
                    batch.commit()
                    result.imported_documents += len(batch)
                    batch = self.store.batch()

            if len(batch) > 0:
                batch.commit()
                result.imported_documents += len(batch)
        except DocumentStoreError as e:
            logger.error("Import of %s failed: %s", name, e)
            result.errors.append(f"Failed to import '{name}': {e}")
