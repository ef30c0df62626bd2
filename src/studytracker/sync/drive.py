"""Remote sync client for backups kept in cloud storage.

Tracks whether the provider is initialized and signed in, and makes
sure both hold before any file operation. Uploads are create-or-update
by file name, so backing up twice under one name never leaves two
remote copies.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Generator, Optional

from ..backup.export import BackupExporter
from ..backup.importer import BatchedImporter, ImportResult
from ..config import get_config
from ..errors import BackupNotFoundError, ProviderError, RemoteOperationError
from .provider import CloudStorageProvider, FileQuery, RemoteFileDescriptor

logger = logging.getLogger(__name__)

APP_DATA_FOLDER = "appDataFolder"
BACKUP_MIME_TYPE = "application/json"


class RemoteSyncClient:
    """Uploads, lists and downloads backup files through a storage provider."""

    def __init__(
        self,
        provider: Optional[CloudStorageProvider] = None,
        prefix: Optional[str] = None,
    ):
        """Initialize sync client.

        Args:
            provider: Cloud storage provider (Google Drive if not provided)
            prefix: Backup file name prefix (uses config if not provided)
        """
        if provider is None:
            from .google_drive import GoogleDriveProvider

            provider = GoogleDriveProvider()

        self.provider = provider
        self.prefix = prefix or get_config().backup_prefix
        self.initialized = False
        self.authenticated = False

    @contextmanager
    def _remote_call(self, message: str) -> Generator[None, None, None]:
        try:
            yield
        except ProviderError as e:
            logger.error("%s: %s", message, e)
            raise RemoteOperationError(message, cause=e) from e

    # ========================================================================
    # Session State
    # ========================================================================

    def initialize(self) -> None:
        """Prepare the provider. Does nothing if already initialized."""
        if self.initialized:
            return

        with self._remote_call("Failed to initialize cloud storage"):
            self.authenticated = self.provider.initialize()
        self.initialized = True

    def sign_in(self) -> None:
        """Sign in to the provider, initializing first if needed."""
        if not self.initialized:
            self.initialize()

        with self._remote_call("Failed to sign in to cloud storage"):
            self.provider.sign_in()
        self.authenticated = True

    def sign_out(self) -> None:
        """Sign out of the provider."""
        if not self.initialized:
            return

        with self._remote_call("Failed to sign out of cloud storage"):
            self.provider.sign_out()
        self.authenticated = False

    def is_signed_in(self) -> bool:
        return self.authenticated

    def _ensure_ready(self) -> None:
        if not self.initialized:
            self.initialize()
        if not self.authenticated:
            self.sign_in()

    # ========================================================================
    # File Operations
    # ========================================================================

    def _backup_query(self, page_size: Optional[int] = None) -> FileQuery:
        return FileQuery(
            name_contains=self.prefix,
            mime_type=BACKUP_MIME_TYPE,
            space=APP_DATA_FOLDER,
            order_by="modifiedTime desc",
            page_size=page_size,
        )

    def default_backup_name(self, today: Optional[date] = None) -> str:
        """Backup file name for a given day, e.g. ``echoes_backup_2025-01-31.json``."""
        today = today or date.today()
        return f"{self.prefix}_{today.isoformat()}.json"

    def locate(self, name: str) -> Optional[RemoteFileDescriptor]:
        """Find a backup file by exact name."""
        self._ensure_ready()
        query = FileQuery(
            name_equals=name,
            mime_type=BACKUP_MIME_TYPE,
            space=APP_DATA_FOLDER,
            page_size=1,
        )

        with self._remote_call(f"Failed to look up file {name}"):
            files = self.provider.list_files(query)
        return files[0] if files else None

    def locate_latest_backup(self) -> Optional[RemoteFileDescriptor]:
        """Find the most recently modified backup file."""
        self._ensure_ready()

        with self._remote_call("Failed to search for backup files"):
            files = self.provider.list_files(self._backup_query(page_size=1))
        return files[0] if files else None

    def require_latest_backup(self) -> RemoteFileDescriptor:
        """Like locate_latest_backup, but a missing backup is an error."""
        latest = self.locate_latest_backup()
        if latest is None:
            raise BackupNotFoundError()
        return latest

    def upload(self, content: str, file_name: str) -> RemoteFileDescriptor:
        """Store backup text under a name, replacing any file of that name."""
        existing = self.locate(file_name)

        with self._remote_call("Failed to upload backup"):
            if existing is not None:
                descriptor = self.provider.update_file(existing.id, content, BACKUP_MIME_TYPE)
            else:
                descriptor = self.provider.create_file(
                    file_name, content, BACKUP_MIME_TYPE, [APP_DATA_FOLDER]
                )

        logger.info("Uploaded %s (%d bytes)", file_name, len(content.encode("utf-8")))
        return descriptor

    def list_backups(self) -> list[RemoteFileDescriptor]:
        """All backup files, newest first."""
        self._ensure_ready()

        with self._remote_call("Failed to list backup files"):
            files = self.provider.list_files(self._backup_query())
        return sorted(files, key=lambda f: f.modified_time, reverse=True)

    def download(self, file_id: str) -> str:
        """Fetch a remote file's text content."""
        self._ensure_ready()

        with self._remote_call(f"Failed to download file {file_id}"):
            content = self.provider.get_file_content(file_id)
        logger.info("Downloaded %s (%d bytes)", file_id, len(content.encode("utf-8")))
        return content

    def prune_backups(self, keep: int) -> list[RemoteFileDescriptor]:
        """Delete all but the ``keep`` newest backup files.

        Returns:
            Descriptors of the deleted files
        """
        if keep < 1:
            raise ValueError("keep must be at least 1")

        stale = self.list_backups()[keep:]
        for descriptor in stale:
            with self._remote_call(f"Failed to delete backup {descriptor.name}"):
                self.provider.delete_file(descriptor.id)
        return stale

    # ========================================================================
    # Backup / Restore
    # ========================================================================

    def backup(
        self,
        exporter: BackupExporter,
        file_name: Optional[str] = None,
    ) -> RemoteFileDescriptor:
        """Export the signed-in user's data and upload it."""
        self._ensure_ready()
        content = exporter.export_user_data()
        return self.upload(content, file_name or self.default_backup_name())

    def restore(
        self,
        importer: BatchedImporter,
        file_id: Optional[str] = None,
        overwrite: bool = False,
    ) -> ImportResult:
        """Download a backup (the latest one by default) and import it."""
        if file_id is None:
            file_id = self.require_latest_backup().id

        content = self.download(file_id)
        return importer.import_user_data(content, overwrite=overwrite)
