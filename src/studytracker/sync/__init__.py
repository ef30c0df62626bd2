"""Cloud sync of backup files.

Keeps backup documents in a cloud storage provider's app-private folder
and pulls them back for restore.
"""

from .drive import APP_DATA_FOLDER, BACKUP_MIME_TYPE, RemoteSyncClient
from .provider import CloudStorageProvider, FileQuery, RemoteFileDescriptor

__all__ = [
    "APP_DATA_FOLDER",
    "BACKUP_MIME_TYPE",
    "RemoteSyncClient",
    "CloudStorageProvider",
    "FileQuery",
    "RemoteFileDescriptor",
]
