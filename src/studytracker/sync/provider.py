"""Cloud storage provider interface.

The remote sync client only talks to this protocol, so any blob store
with folder scoping and per-file metadata can back it. Google Drive is
the shipped implementation.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from ..backup.codec import parse_timestamp


@dataclass(frozen=True)
class RemoteFileDescriptor:
    """Identifies a remote file without fetching its content."""

    id: str
    name: str
    modified_time: datetime
    size: int = 0

    @classmethod
    def from_api_response(cls, file: dict) -> "RemoteFileDescriptor":
        """Create from a Drive ``files`` resource."""
        return cls(
            id=file["id"],
            name=file.get("name", ""),
            modified_time=parse_timestamp(file["modifiedTime"]),
            size=int(file.get("size", 0) or 0),
        )

    @property
    def size_human(self) -> str:
        """Get human-readable size."""
        if self.size < 1024:
            return f"{self.size} B"
        elif self.size < 1024 * 1024:
            return f"{self.size / 1024:.1f} KB"
        else:
            return f"{self.size / (1024 * 1024):.1f} MB"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


@dataclass(frozen=True)
class FileQuery:
    """Filter for listing files inside one storage space."""

    name_equals: Optional[str] = None
    name_contains: Optional[str] = None
    mime_type: Optional[str] = None
    space: str = "appDataFolder"
    order_by: Optional[str] = "modifiedTime desc"
    page_size: Optional[int] = None  # None means every match

    def matches(self, name: str, mime_type: Optional[str] = None) -> bool:
        """Check a file against the name and type filters."""
        if self.name_equals is not None and name != self.name_equals:
            return False
        if self.name_contains is not None and self.name_contains not in name:
            return False
        if self.mime_type is not None and mime_type is not None and mime_type != self.mime_type:
            return False
        return True

    def to_drive_query(self) -> str:
        """Render as a Drive v3 ``q`` expression."""
        clauses = []
        if self.name_equals is not None:
            clauses.append(f"name = {_quote(self.name_equals)}")
        if self.name_contains is not None:
            clauses.append(f"name contains {_quote(self.name_contains)}")
        if self.mime_type is not None:
            clauses.append(f"mimeType = {_quote(self.mime_type)}")
        clauses.append("trashed = false")
        return " and ".join(clauses)


@runtime_checkable
class CloudStorageProvider(Protocol):
    """Operations the remote sync client needs from a cloud file store.

    Implementations raise ``ProviderError`` for every failed call.
    """

    def initialize(self) -> bool:
        """Prepare the client. Return True if a signed-in session already exists."""
        ...

    def sign_in(self) -> None: ...

    def sign_out(self) -> None: ...

    def list_files(self, query: FileQuery) -> list[RemoteFileDescriptor]: ...

    def create_file(
        self, name: str, content: str, mime_type: str, parents: list[str]
    ) -> RemoteFileDescriptor: ...

    def update_file(self, file_id: str, content: str, mime_type: str) -> RemoteFileDescriptor: ...

    def get_file_content(self, file_id: str) -> str: ...

    def delete_file(self, file_id: str) -> None: ...
