"""Backup export and restore."""

from .codec import decode, dumps, encode, format_timestamp, parse_timestamp
from .export import BackupExporter, serialize
from .importer import BATCH_LIMIT, BatchedImporter, ImportResult
from .schemas import (
    BACKUP_COLLECTIONS,
    BACKUP_FORMAT_VERSION,
    MUTABLE_COLLECTIONS,
    SETTINGS_COLLECTION,
    BackupCollection,
    BackupDocument,
    BackupMetadata,
    BackupRecord,
    parse_backup,
)

__all__ = [
    # Codec
    "encode",
    "decode",
    "dumps",
    "format_timestamp",
    "parse_timestamp",
    # Document
    "BACKUP_COLLECTIONS",
    "BACKUP_FORMAT_VERSION",
    "MUTABLE_COLLECTIONS",
    "SETTINGS_COLLECTION",
    "BackupCollection",
    "BackupDocument",
    "BackupMetadata",
    "BackupRecord",
    "parse_backup",
    # Export / import
    "BackupExporter",
    "serialize",
    "BATCH_LIMIT",
    "BatchedImporter",
    "ImportResult",
]
