"""Backup export.

Reads every backed-up collection of the signed-in user from the document
store and assembles one portable, versioned JSON document.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..auth import AuthContext, UserSession
from ..db.base import DocumentStore
from ..db.sqlite import get_db
from ..errors import AuthenticationError, BackupExportError, DocumentStoreError
from . import codec
from .schemas import (
    BACKUP_COLLECTIONS,
    BACKUP_FORMAT_VERSION,
    SETTINGS_COLLECTION,
    BackupDocument,
    BackupMetadata,
    BackupRecord,
)

logger = logging.getLogger(__name__)


class BackupExporter:
    """Builds backup documents for the signed-in user.

    Export is all-or-nothing: if any collection cannot be read, no
    document is produced.
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        auth: Optional[AuthContext] = None,
    ):
        """Initialize exporter.

        Args:
            store: Document store (uses global database if not provided)
            auth: Source of the signed-in user (uses config if not provided)
        """
        self.store = store or get_db()
        self.auth = auth or UserSession.from_config()

    def _require_user(self) -> str:
        user_id = self.auth.current_user_id
        if not user_id:
            raise AuthenticationError()
        return user_id

    def build_document(self) -> BackupDocument:
        """Read all collections and assemble the backup document.

        Raises:
            AuthenticationError: If no user is signed in.
            BackupExportError: If reading any collection fails.
        """
        user_id = self._require_user()
        collections: dict[str, list[BackupRecord]] = {}

        try:
            for name in BACKUP_COLLECTIONS:
                if name == SETTINGS_COLLECTION:
                    # Singleton: keep only the first record, keyed by the user
                    snapshots = self.store.list_documents(user_id, name, limit=1)
                    if snapshots:
                        collections[name] = [BackupRecord(id=user_id, data=snapshots[0].data)]
                    continue

                snapshots = self.store.list_documents(user_id, name)
                collections[name] = [
                    BackupRecord(id=snapshot.id, data=snapshot.data) for snapshot in snapshots
                ]
        except DocumentStoreError as e:
            logger.error("Export failed for user %s: %s", user_id, e)
            raise BackupExportError("Failed to create backup", cause=e) from e

        document = BackupDocument(
            metadata=BackupMetadata(
                user_id=user_id,
                timestamp=codec.format_timestamp(datetime.now(timezone.utc)),
                version=BACKUP_FORMAT_VERSION,
            ),
            collections=collections,
        )
        logger.info("Exported backup for %s: %s", user_id, document.record_counts())
        return document

    def export_user_data(self) -> str:
        """Export the signed-in user's data as backup JSON text."""
        return serialize(self.build_document())


def serialize(document: BackupDocument) -> str:
    """Turn a backup document into JSON text, encoding all timestamps."""
    return codec.dumps(document.to_dict())
