"""Pydantic schemas for the portable backup document."""

import json
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError

BACKUP_FORMAT_VERSION = "1.0.0"


class BackupCollection(str, Enum):
    """Collections included in a backup, in processing order."""

    SUBJECTS = "subjects"
    PROGRESS = "progress"
    USER_SETTINGS = "userSettings"  # singleton, keyed by user id


BACKUP_COLLECTIONS: tuple[str, ...] = tuple(c.value for c in BackupCollection)
SETTINGS_COLLECTION = BackupCollection.USER_SETTINGS.value
MUTABLE_COLLECTIONS: tuple[str, ...] = (
    BackupCollection.SUBJECTS.value,
    BackupCollection.PROGRESS.value,
)


def version_tuple(version: str) -> tuple[int, ...]:
    """Split a dotted numeric version ("1.0.0") into integers."""
    parts = version.split(".")
    if not parts or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid version string: {version!r}")
    return tuple(int(part) for part in parts)


class BackupMetadata(BaseModel):
    """Who the backup belongs to, when it was made, and its format version."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: str = Field(alias="userId")
    timestamp: str
    version: str

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        version_tuple(value)
        return value


class BackupRecord(BaseModel):
    """One document of a collection."""

    model_config = ConfigDict(frozen=True)

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class BackupDocument(BaseModel):
    """A user's whole dataset as one versioned document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    metadata: BackupMetadata
    collections: dict[str, list[BackupRecord]]

    def record_counts(self) -> dict[str, int]:
        """Number of records per collection."""
        return {name: len(records) for name, records in self.collections.items()}

    @property
    def total_records(self) -> int:
        return sum(self.record_counts().values())

    def to_dict(self) -> dict[str, Any]:
        """Plain dictionary in the wire layout (camelCase metadata keys)."""
        return self.model_dump(by_alias=True)


def parse_backup(source: Union[str, bytes, dict[str, Any]]) -> BackupDocument:
    """Parse and validate backup text or an already-decoded dictionary.

    Raises:
        ValidationError: If the input is not JSON, lacks ``metadata`` or
            ``collections``, or was written by a newer major format version.
    """
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid backup data: not valid JSON ({e})") from e
    else:
        data = source

    if not isinstance(data, dict):
        raise ValidationError("Invalid backup data: expected a JSON object")

    missing = [key for key in ("metadata", "collections") if key not in data]
    if missing:
        raise ValidationError(f"Invalid backup data: missing {', '.join(missing)}")

    try:
        document = BackupDocument.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid backup data: {e}") from e

    supported_major = version_tuple(BACKUP_FORMAT_VERSION)[0]
    if version_tuple(document.metadata.version)[0] > supported_major:
        raise ValidationError(
            f"Unsupported backup version {document.metadata.version} "
            f"(this version reads {supported_major}.x)"
        )

    return document
