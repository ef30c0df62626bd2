"""Document store interface consumed by the backup engine.

Records live in per-user collections and are addressed by
``(owner_id, collection, doc_id)``. Writes can be grouped into batches
that the store commits atomically, up to a hard per-batch ceiling.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

# Hard ceiling on operations per batch commit
MAX_BATCH_OPERATIONS = 500


@dataclass
class DocumentSnapshot:
    """A single stored record."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchOperation:
    """A pending write or delete inside a batch."""

    kind: str  # "set" or "delete"
    owner_id: str
    collection: str
    doc_id: str
    data: Optional[dict[str, Any]] = None


class WriteBatch(Protocol):
    """A group of writes committed together."""

    operations: list[BatchOperation]

    def set(self, owner_id: str, collection: str, doc_id: str, data: dict[str, Any]) -> None: ...

    def delete(self, owner_id: str, collection: str, doc_id: str) -> None: ...

    def commit(self) -> None: ...

    def __len__(self) -> int: ...


class DocumentStore(Protocol):
    """Per-user structured document database."""

    def list_documents(
        self, owner_id: str, collection: str, limit: Optional[int] = None
    ) -> list[DocumentSnapshot]: ...

    def get_document(
        self, owner_id: str, collection: str, doc_id: str
    ) -> Optional[DocumentSnapshot]: ...

    def set_document(
        self, owner_id: str, collection: str, doc_id: str, data: dict[str, Any]
    ) -> None: ...

    def delete_document(self, owner_id: str, collection: str, doc_id: str) -> None: ...

    def batch(self) -> WriteBatch: ...
